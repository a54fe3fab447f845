"""
Pydantic models for API response schemas.

Responsibilities:
- Define standard response structures
- Ensure consistent API output (camelCase keys on the wire)
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.scene_record import Vector3


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ShareResponse(_WireModel):
    success: bool = True
    share_url: str = Field(..., alias="shareUrl")
    unique_id: str = Field(..., alias="uniqueId")
    base_image_url: str = Field(..., alias="baseImageUrl")
    overlay_image_url: str = Field(..., alias="overlayImageUrl")


class ARData(_WireModel):
    base_image: str = Field(..., alias="baseImage")
    overlay_image: str = Field(..., alias="overlayImage")
    position: Vector3
    rotation: Vector3
    scale: float


class SceneResponse(_WireModel):
    success: bool = True
    ar_data: ARData = Field(..., alias="arData")


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
