"""
Scene sharing endpoints.

- POST /share: upload both images, persist the scene, return its share link
- GET /ar-experience/{scene_id}: fetch a shared scene for the viewer
- GET /health: liveness probe under the API prefix
"""

from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.errors import ARShareError
from app.core.logger import get_logger
from app.models.request_models import ShareRequest
from app.models.response_models import HealthResponse, SceneResponse, ShareResponse
from app.services.scene_service import SceneService, get_scene_service

logger = get_logger(__name__)

router = APIRouter(tags=["Share"])


@router.get("/health", response_model=HealthResponse)
async def api_health():
    return HealthResponse()


@router.post("/share", response_model=ShareResponse)
async def share_scene(
    payload: ShareRequest,
    request: Request,
    service: SceneService = Depends(get_scene_service),
):
    """
    Creates a shareable AR experience from a base and an overlay image.
    """
    origin = settings.SHARE_BASE_URL or str(request.base_url)
    try:
        return await service.create_and_share(payload, origin)
    except ARShareError as e:
        logger.error(f"Error sharing AR experience: {e.detail}")
        raise
    except Exception as e:
        logger.error(f"Error sharing AR experience: {str(e)}")
        raise ARShareError(str(e), message="Failed to create AR experience") from e


@router.get("/ar-experience/{scene_id}", response_model=SceneResponse)
async def get_scene(scene_id: str, service: SceneService = Depends(get_scene_service)):
    """
    Returns a shared scene with cache-busted image URLs.
    """
    try:
        ar_data = await service.fetch(scene_id)
    except ARShareError as e:
        logger.info(f"Fetch of AR experience {scene_id} failed: {e.detail}")
        raise
    except Exception as e:
        logger.error(f"Error fetching AR experience {scene_id}: {str(e)}")
        raise ARShareError(str(e), message="Failed to fetch AR experience") from e

    return SceneResponse(ar_data=ar_data)
