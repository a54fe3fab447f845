"""
Scene viewer.

Turns a resolved scene into the two textured planes the 3D renderer draws,
and drives loading a shared scene by id: loading, loaded, error (with retry
and return-home actions) and closed. Closing cancels any load in flight.
"""

import asyncio
import base64
import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

from ar_client.api import SceneApiClient
from ar_client.errors import ARClientError, user_message
from ar_client.models import Scene
from ar_client.share_link import parse_legacy_share_query

logger = logging.getLogger(__name__)

HOME_PATH = "/"
Size = Tuple[int, int]


@dataclass(frozen=True)
class PlaneSpec:
    """A unit-wide plane; height follows the texture's aspect ratio."""
    texture_url: str
    width: float
    height: float
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: float = 1.0
    transparent: bool = False


def _aspect(size: Optional[Size]) -> float:
    if not size or size[0] <= 0 or size[1] <= 0:
        return 1.0
    return size[1] / size[0]


def build_planes(scene: Scene, base_size: Size = None, overlay_size: Size = None) -> List[PlaneSpec]:
    planes = [PlaneSpec(texture_url=scene.base_image, width=1.0, height=_aspect(base_size))]
    if scene.overlay_image:
        planes.append(PlaneSpec(
            texture_url=scene.overlay_image,
            width=1.0,
            height=_aspect(overlay_size),
            position=scene.position.as_tuple(),
            rotation=scene.rotation.as_tuple(),
            scale=scene.scale,
            transparent=True,
        ))
    return planes


def image_size(data: bytes) -> Optional[Size]:
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Could not read texture size: {e}")
        return None


async def probe_texture_size(url: str, client: httpx.AsyncClient) -> Optional[Size]:
    """Pixel size of a texture, or None when it cannot be fetched or decoded."""
    if not url:
        return None
    if url.startswith("data:"):
        _, _, payload = url.partition(",")
        try:
            return image_size(base64.b64decode(payload))
        except ValueError as e:
            logger.warning(f"Could not decode texture data URL: {e}")
            return None
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Could not fetch texture {url}: {e}")
        return None
    return image_size(response.content)


class ViewerStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"
    CLOSED = "closed"


class SceneViewer:
    def __init__(self, api: SceneApiClient, probe_textures: bool = True, texture_transport: httpx.AsyncBaseTransport = None):
        self.api = api
        self.probe_textures = probe_textures
        self.texture_transport = texture_transport
        self.status = ViewerStatus.IDLE
        self.scene: Optional[Scene] = None
        self.planes: List[PlaneSpec] = []
        self.error_message: Optional[str] = None
        self.scene_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def actions(self) -> Tuple[str, ...]:
        """Actions offered to the user; an error is never a dead end."""
        if self.status == ViewerStatus.ERROR:
            return ("retry", "home")
        return ()

    def open(self, scene_id: str) -> asyncio.Task:
        """Start loading a shared scene; must be called from a running loop."""
        if self.status == ViewerStatus.CLOSED:
            raise RuntimeError("Viewer is closed")
        self._cancel_pending()
        self.scene_id = scene_id
        self.status = ViewerStatus.LOADING
        self.error_message = None
        self._task = asyncio.get_running_loop().create_task(self._load(scene_id))
        return self._task

    def open_legacy(self, query: str) -> None:
        """Show a scene carried entirely in a legacy share link's query string."""
        try:
            scene = parse_legacy_share_query(query)
        except ARClientError as e:
            self._fail(e)
            return
        self._show(scene, None, None)

    def retry(self) -> asyncio.Task:
        if self.scene_id is None:
            raise RuntimeError("Nothing to retry")
        return self.open(self.scene_id)

    def close(self) -> None:
        """Unmount the viewer; a pending load (and its retries) is cancelled."""
        self._cancel_pending()
        self.status = ViewerStatus.CLOSED

    async def wait(self) -> None:
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    def _cancel_pending(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _load(self, scene_id: str) -> None:
        logger.info(f"Loading AR scene {scene_id}")
        try:
            scene = await self.api.fetch_scene(scene_id)
            base_size = overlay_size = None
            if self.probe_textures:
                async with httpx.AsyncClient(transport=self.texture_transport, timeout=self.api.policy.timeout) as client:
                    base_size, overlay_size = await asyncio.gather(
                        probe_texture_size(scene.base_image, client),
                        probe_texture_size(scene.overlay_image, client),
                    )
        except ARClientError as e:
            logger.error(f"Error loading AR scene {scene_id}: {e}")
            self._fail(e)
            return
        except Exception as e:
            logger.exception(f"Unexpected error loading AR scene {scene_id}: {e}")
            self._fail(e)
            return
        self._show(scene, base_size, overlay_size)

    def _show(self, scene: Scene, base_size: Optional[Size], overlay_size: Optional[Size]) -> None:
        self.scene = scene
        self.planes = build_planes(scene, base_size, overlay_size)
        self.status = ViewerStatus.LOADED

    def _fail(self, exc: BaseException) -> None:
        self.scene = None
        self.planes = []
        self.error_message = user_message(exc)
        self.status = ViewerStatus.ERROR
