"""
HTTP client for the scene API.

Responsibilities:
- create_scene: POST /api/share (single attempt; creating is not idempotent)
- fetch_scene: GET /api/ar-experience/{id} with bounded retries, returning a
  scene whose image URLs are ready for the renderer
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ar_client.config import client_settings
from ar_client.errors import (
    ARClientError,
    MalformedSceneError,
    RetryableStatusError,
    RetryExhaustedError,
    SceneLoadError,
    SceneNotFoundError,
    ShareError,
)
from ar_client.models import Scene, ShareResult, Vector3
from ar_client.retry import RetryPolicy, retry_async
from ar_client.urls import next_cache_token, to_renderer_url

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {408, 425, 429}
REQUIRED_SCENE_FIELDS = ("baseImage", "overlayImage", "position", "rotation", "scale")


def is_retryable_fetch_error(exc: BaseException) -> bool:
    return isinstance(exc, (httpx.RequestError, RetryableStatusError, MalformedSceneError))


def parse_scene(body) -> Scene:
    """
    Validate a fetch-by-id response body.

    A 200 that lacks the scene, either image URL or any part of the transform
    is malformed, not a scene with default fields.
    """
    if not isinstance(body, dict) or not body.get("success") or not isinstance(body.get("arData"), dict):
        raise MalformedSceneError("Response has no arData")
    ar_data = body["arData"]
    missing = [field for field in REQUIRED_SCENE_FIELDS if ar_data.get(field) in (None, "")]
    if missing:
        raise MalformedSceneError(f"Response is missing {', '.join(missing)}")
    try:
        return Scene.model_validate(ar_data)
    except ValidationError as e:
        raise MalformedSceneError(f"Invalid scene data: {e.error_count()} errors") from e


class SceneApiClient:
    def __init__(
        self,
        base_url: str = None,
        policy: RetryPolicy = None,
        transport: httpx.AsyncBaseTransport = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = (base_url or client_settings.API_BASE_URL).rstrip("/")
        self.policy = policy or RetryPolicy.from_settings()
        self.transport = transport
        self.sleep = sleep

    def _client(self, timeout: Optional[float]) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, transport=self.transport, timeout=timeout)

    async def create_scene(
        self,
        base_image: str,
        overlay_image: str,
        position: Vector3 = Vector3(),
        rotation: Vector3 = Vector3(),
        scale: float = 1.0,
    ) -> ShareResult:
        payload = {
            "baseImage": base_image,
            "overlayImage": overlay_image,
            "position": position.model_dump(),
            "rotation": rotation.model_dump(),
            "scale": scale,
        }
        try:
            async with self._client(self.policy.timeout) as client:
                response = await client.post("/api/share", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Share request failed: {e}")
            raise ShareError(str(e)) from e

        if response.status_code == 400:
            raise ShareError(response.text, message="Please add both a base image and an overlay image.")
        if not response.is_success:
            logger.error(f"Share request returned {response.status_code}: {response.text}")
            raise ShareError(f"Server responded with status {response.status_code}")

        try:
            return ShareResult.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ShareError(f"Malformed share response: {e}") from e

    async def fetch_scene(self, scene_id: str) -> Scene:
        """
        Fetch a shared scene, retrying transient failures with backoff.

        Raises:
            SceneNotFoundError: The id does not exist (not retried)
            SceneLoadError: Any other failure, after the retry budget is spent
        """
        path = f"/api/ar-experience/{quote(scene_id, safe='')}"

        async with self._client(self.policy.timeout) as client:
            async def attempt() -> Scene:
                response = await client.get(path)
                if response.status_code == 404:
                    raise SceneNotFoundError(f"Scene {scene_id} not found")
                if response.status_code in RETRYABLE_STATUS or response.status_code >= 500:
                    raise RetryableStatusError(response.status_code)
                if not response.is_success:
                    raise SceneLoadError(f"Server responded with status {response.status_code}")
                try:
                    body = response.json()
                except ValueError as e:
                    raise MalformedSceneError("Response is not JSON") from e
                return parse_scene(body)

            try:
                scene = await retry_async(
                    attempt,
                    policy=self.policy,
                    is_retryable=is_retryable_fetch_error,
                    sleep=self.sleep,
                    description=f"fetch scene {scene_id}",
                )
            except RetryExhaustedError as e:
                logger.error(f"Could not load scene {scene_id}: {e}")
                raise SceneLoadError(str(e.last_error)) from e.last_error
            except ARClientError:
                raise
            except Exception as e:
                logger.error(f"Unexpected error loading scene {scene_id}: {e}")
                raise SceneLoadError(str(e)) from e

        token = next_cache_token()
        return scene.model_copy(update={
            "base_image": to_renderer_url(scene.base_image, self.base_url, token),
            "overlay_image": to_renderer_url(scene.overlay_image, self.base_url, token),
        })
