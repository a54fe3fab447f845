"""
Persisted scene model.

A SceneRecord is written exactly once and never updated; readers only ever
hand out copies (for instance with cache-busted image URLs).
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Vector3(BaseModel):
    """x/y/z triple; positions in scene units, rotations in radians."""
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SceneRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    base_image_url: str = Field(..., min_length=1)
    overlay_image_url: str = Field(..., min_length=1)
    position: Vector3 = Vector3()
    rotation: Vector3 = Vector3()
    scale: float = Field(1.0, gt=0)
    created_at: datetime = Field(default_factory=utcnow)

    def to_row(self) -> Dict[str, Any]:
        """Column mapping for the ``ar_experiences`` table."""
        return {
            "unique_id": self.id,
            "base_image": self.base_image_url,
            "overlay_image": self.overlay_image_url,
            "position": self.position.model_dump(),
            "rotation": self.rotation.model_dump(),
            "scale": self.scale,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SceneRecord":
        return cls(
            id=row["unique_id"],
            base_image_url=row["base_image"],
            overlay_image_url=row["overlay_image"],
            position=row.get("position") or {},
            rotation=row.get("rotation") or {},
            scale=row.get("scale", 1.0),
            created_at=row.get("created_at") or utcnow(),
        )
