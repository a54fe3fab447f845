"""
Pydantic models for API request validation.

Responsibilities:
- Define schemas for incoming JSON payloads
- Validate data types and required fields

Images are optional at the schema level so a missing image is reported as
MissingImageError by the route rather than as a generic validation error.
Non-finite transform values and non-positive scales are rejected here.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.scene_record import Vector3


class ShareRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    base_image: Optional[str] = Field(None, alias="baseImage")
    overlay_image: Optional[str] = Field(None, alias="overlayImage")
    position: Optional[Vector3] = None
    rotation: Optional[Vector3] = None
    scale: Optional[float] = Field(None, gt=0)
