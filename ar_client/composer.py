"""
Scene composer state.

The composer is an immutable ``ComposerState`` plus a ``reduce(state, action)``
function; every edit returns a new state. Phases:

    EMPTY -> BASE_ONLY -> COMPOSED -> SUBMITTING -> SHARED

Saving to disk is an explicit ``dump_state``/``load_state`` call rather than a
side effect of each edit.
"""

import json
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict

from ar_client.errors import ARClientError, InvalidTransitionError, user_message
from ar_client.models import ShareResult, Vector3
from ar_client.urls import add_cache_buster

logger = logging.getLogger(__name__)

# A freshly added overlay sits above the base image, lying flat against it
DEFAULT_POSITION = Vector3(x=0.0, y=0.5, z=0.1)
DEFAULT_ROTATION = Vector3(x=math.pi / 2, y=0.0, z=0.0)
DEFAULT_SCALE = 0.8


class Phase(str, Enum):
    EMPTY = "empty"
    BASE_ONLY = "base_only"
    COMPOSED = "composed"
    SUBMITTING = "submitting"
    SHARED = "shared"


EDITABLE_PHASES = {Phase.BASE_ONLY, Phase.COMPOSED, Phase.SHARED}


class ComposerState(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: Phase = Phase.EMPTY
    base_image: Optional[str] = None
    overlay_image: Optional[str] = None
    position: Vector3 = DEFAULT_POSITION
    rotation: Vector3 = DEFAULT_ROTATION
    scale: float = DEFAULT_SCALE
    overlay_placed: bool = False
    error: Optional[str] = None
    share: Optional[ShareResult] = None

    @property
    def can_share(self) -> bool:
        return self.phase == Phase.COMPOSED

    @property
    def is_busy(self) -> bool:
        return self.phase == Phase.SUBMITTING


# Actions

@dataclass(frozen=True)
class SetBaseImage:
    image: str


@dataclass(frozen=True)
class SetOverlayImage:
    image: str


@dataclass(frozen=True)
class ClearOverlay:
    pass


@dataclass(frozen=True)
class SetPosition:
    position: Vector3


@dataclass(frozen=True)
class SetRotation:
    rotation: Vector3


@dataclass(frozen=True)
class SetScale:
    scale: float


@dataclass(frozen=True)
class BeginShare:
    pass


@dataclass(frozen=True)
class ShareSucceeded:
    result: ShareResult


@dataclass(frozen=True)
class ShareFailed:
    message: str


@dataclass(frozen=True)
class Reset:
    pass


def _phase_for(base_image: Optional[str], overlay_image: Optional[str]) -> Phase:
    if not base_image:
        return Phase.EMPTY
    if not overlay_image:
        return Phase.BASE_ONLY
    return Phase.COMPOSED


def _edit(state: ComposerState, **update) -> ComposerState:
    """Apply a scene edit; any edit invalidates a previous share and error."""
    base_image = update.get("base_image", state.base_image)
    overlay_image = update.get("overlay_image", state.overlay_image)
    update.update(phase=_phase_for(base_image, overlay_image), error=None, share=None)
    return state.model_copy(update=update)


def _require(state: ComposerState, allowed, action) -> None:
    if state.phase not in allowed:
        raise InvalidTransitionError(f"{type(action).__name__} is not allowed while {state.phase.value}")


def reduce(state: ComposerState, action) -> ComposerState:
    """Return the state that results from applying ``action`` to ``state``."""
    if isinstance(action, Reset):
        return ComposerState()

    if isinstance(action, SetBaseImage):
        if not action.image:
            raise ValueError("Base image reference is empty")
        _require(state, {Phase.EMPTY} | EDITABLE_PHASES, action)
        return _edit(state, base_image=action.image)

    if isinstance(action, SetOverlayImage):
        if not action.image:
            raise ValueError("Overlay image reference is empty")
        _require(state, EDITABLE_PHASES, action)
        if state.overlay_placed:
            return _edit(state, overlay_image=action.image)
        return _edit(
            state,
            overlay_image=action.image,
            position=DEFAULT_POSITION,
            rotation=DEFAULT_ROTATION,
            scale=DEFAULT_SCALE,
            overlay_placed=True,
        )

    if isinstance(action, ClearOverlay):
        _require(state, {Phase.COMPOSED, Phase.SHARED}, action)
        return _edit(state, overlay_image=None)

    if isinstance(action, SetPosition):
        _require(state, EDITABLE_PHASES, action)
        return _edit(state, position=action.position)

    if isinstance(action, SetRotation):
        _require(state, EDITABLE_PHASES, action)
        return _edit(state, rotation=action.rotation)

    if isinstance(action, SetScale):
        if not math.isfinite(action.scale) or action.scale <= 0:
            raise ValueError(f"Scale must be a positive number, got {action.scale}")
        _require(state, EDITABLE_PHASES, action)
        return _edit(state, scale=float(action.scale))

    if isinstance(action, BeginShare):
        _require(state, {Phase.COMPOSED}, action)
        return state.model_copy(update={"phase": Phase.SUBMITTING, "error": None})

    if isinstance(action, ShareSucceeded):
        _require(state, {Phase.SUBMITTING}, action)
        return state.model_copy(update={"phase": Phase.SHARED, "share": action.result})

    if isinstance(action, ShareFailed):
        _require(state, {Phase.SUBMITTING}, action)
        return state.model_copy(update={"phase": Phase.COMPOSED, "error": action.message})

    raise TypeError(f"Unknown composer action: {action!r}")


async def submit(
    state: ComposerState,
    create_scene: Callable[..., Awaitable[ShareResult]],
    on_change: Callable[[ComposerState], None] = None,
) -> ComposerState:
    """
    Share the composed scene.

    ``create_scene`` is usually ``SceneApiClient.create_scene``. ``on_change``
    receives the SUBMITTING state so the UI can show progress. Failures land
    back in COMPOSED with the images kept and a user-facing error set.
    """
    state = reduce(state, BeginShare())
    if on_change:
        on_change(state)

    try:
        result = await create_scene(
            state.base_image,
            state.overlay_image,
            position=state.position,
            rotation=state.rotation,
            scale=state.scale,
        )
    except ARClientError as e:
        logger.error(f"Sharing failed: {e}")
        return reduce(state, ShareFailed(user_message(e)))

    logger.info(f"Scene shared as {result.unique_id}")
    return reduce(state, ShareSucceeded(result))


# Persistence

def dump_state(state: ComposerState) -> str:
    data = state.model_dump(mode="json", by_alias=True)
    data["saved_at"] = int(time.time() * 1000)
    return json.dumps(data)


def load_state(text: str) -> ComposerState:
    """
    Restore a saved composer.

    Remote image URLs get a fresh cache-busting parameter; data URLs are kept
    as-is. A save taken mid-submit comes back as COMPOSED.
    """
    data = json.loads(text)
    data.pop("saved_at", None)
    state = ComposerState.model_validate(data)

    update = {}
    for field in ("base_image", "overlay_image"):
        value = getattr(state, field)
        if value:
            update[field] = add_cache_buster(value)
    if state.phase == Phase.SUBMITTING:
        update["phase"] = Phase.COMPOSED
    return state.model_copy(update=update)


def save_to_file(state: ComposerState, path: Union[str, Path]) -> None:
    Path(path).write_text(dump_state(state), encoding="utf-8")


def load_from_file(path: Union[str, Path]) -> ComposerState:
    """Load a saved composer; a missing or unreadable file yields an empty one."""
    path = Path(path)
    if not path.exists():
        return ComposerState()
    try:
        return load_state(path.read_text(encoding="utf-8"))
    except ValueError as e:
        logger.error(f"Error loading composer state from {path}: {e}")
        return ComposerState()
