"""
Client-side scene models, parsed from and serialised to the API's camelCase JSON.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Vector3(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_tuple(self):
        return (self.x, self.y, self.z)


class Scene(BaseModel):
    """A resolved scene, ready for the viewer."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_image: str = Field(..., alias="baseImage", min_length=1)
    overlay_image: Optional[str] = Field(None, alias="overlayImage")
    position: Vector3 = Vector3()
    rotation: Vector3 = Vector3()
    scale: float = Field(1.0, gt=0)


class ShareResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    unique_id: str = Field(..., alias="uniqueId", min_length=1)
    share_url: str = Field(..., alias="shareUrl", min_length=1)
    base_image_url: Optional[str] = Field(None, alias="baseImageUrl")
    overlay_image_url: Optional[str] = Field(None, alias="overlayImageUrl")
