"""
Scene create-and-share / fetch-by-id logic behind the API routes.

Responsibilities:
- Validate that both images are present before any side effect
- Upload both images concurrently; persist only if both succeed
- Build the share URL for a new scene
- Hand out fetched records with fresh cache-busted image URLs
"""

import asyncio
import threading
import time
from typing import Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import Depends
from starlette.concurrency import run_in_threadpool

from app.core.database import SceneStore, get_scene_store
from app.core.errors import MissingImageError
from app.core.logger import get_logger
from app.core.storage import AssetStore, get_asset_store
from app.models.request_models import ShareRequest
from app.models.response_models import ARData, ShareResponse
from app.models.scene_record import SceneRecord, Vector3

logger = get_logger(__name__)

CACHE_BUST_PARAM = "cb"


class CacheBuster:
    """Millisecond tokens that strictly increase, even within the same millisecond."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_token(self) -> str:
        with self._lock:
            self._last = max(int(self._clock() * 1000), self._last + 1)
            return str(self._last)


def add_cache_buster(url: str, token: str) -> str:
    """Set ``cb=<token>`` on a URL, replacing any previous value. Data URLs are left alone."""
    if url.startswith("data:"):
        return url
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != CACHE_BUST_PARAM]
    query.append((CACHE_BUST_PARAM, token))
    return urlunsplit(parts._replace(query=urlencode(query)))


def build_share_url(origin: str, scene_id: str) -> str:
    return f"{origin.rstrip('/')}/ar-view/{scene_id}"


class SceneService:
    def __init__(self, asset_store: AssetStore, scene_store: SceneStore, cache_buster: CacheBuster = None):
        self.asset_store = asset_store
        self.scene_store = scene_store
        self.cache_buster = cache_buster or _cache_buster

    async def create_and_share(self, request: ShareRequest, origin: str) -> ShareResponse:
        """
        Upload both images, persist the scene and return its share link.

        Raises:
            MissingImageError: If either image is absent (nothing is uploaded)
            UploadError: If either upload fails (nothing is persisted)
        """
        if not request.base_image or not request.overlay_image:
            raise MissingImageError()

        results = await asyncio.gather(
            run_in_threadpool(self.asset_store.store, request.base_image),
            run_in_threadpool(self.asset_store.store, request.overlay_image),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                raise result
        base_image_url, overlay_image_url = results

        record = SceneRecord(
            base_image_url=base_image_url,
            overlay_image_url=overlay_image_url,
            position=request.position or Vector3(),
            rotation=request.rotation or Vector3(),
            scale=request.scale if request.scale is not None else 1.0,
        )
        scene_id = await run_in_threadpool(self.scene_store.create, record)

        share_url = build_share_url(origin, scene_id)
        logger.info(f"Shared scene {scene_id} at {share_url}")
        return ShareResponse(
            share_url=share_url,
            unique_id=scene_id,
            base_image_url=base_image_url,
            overlay_image_url=overlay_image_url,
        )

    async def fetch(self, scene_id: str) -> ARData:
        """Look up a scene; the returned copy carries cache-busted image URLs."""
        record = await run_in_threadpool(self.scene_store.get_by_id, scene_id)
        token = self.cache_buster.next_token()
        return ARData(
            base_image=add_cache_buster(record.base_image_url, token),
            overlay_image=add_cache_buster(record.overlay_image_url, token),
            position=record.position,
            rotation=record.rotation,
            scale=record.scale,
        )


_cache_buster = CacheBuster()


def get_scene_service(
    asset_store: AssetStore = Depends(get_asset_store),
    scene_store: SceneStore = Depends(get_scene_store),
) -> SceneService:
    return SceneService(asset_store, scene_store)
