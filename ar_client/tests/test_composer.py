import asyncio
import math

import pytest

from ar_client.composer import (
    DEFAULT_POSITION,
    DEFAULT_ROTATION,
    DEFAULT_SCALE,
    BeginShare,
    ClearOverlay,
    ComposerState,
    Phase,
    Reset,
    SetBaseImage,
    SetOverlayImage,
    SetPosition,
    SetScale,
    ShareFailed,
    ShareSucceeded,
    dump_state,
    load_from_file,
    load_state,
    reduce,
    save_to_file,
    submit,
)
from ar_client.errors import InvalidTransitionError, ShareError
from ar_client.models import ShareResult, Vector3

BASE = "data:image/png;base64,QkFTRQ=="
OVERLAY = "https://cdn.example.com/overlay.png"
RESULT = ShareResult(unique_id="abc", share_url="https://app.example.com/ar-view/abc")


def _composed():
    state = reduce(ComposerState(), SetBaseImage(BASE))
    return reduce(state, SetOverlayImage(OVERLAY))


def test_happy_path_phases():
    state = ComposerState()
    assert state.phase == Phase.EMPTY

    state = reduce(state, SetBaseImage(BASE))
    assert state.phase == Phase.BASE_ONLY

    state = reduce(state, SetOverlayImage(OVERLAY))
    assert state.phase == Phase.COMPOSED
    assert state.can_share

    state = reduce(state, BeginShare())
    assert state.phase == Phase.SUBMITTING
    assert state.is_busy

    state = reduce(state, ShareSucceeded(RESULT))
    assert state.phase == Phase.SHARED
    assert state.share.unique_id == "abc"


def test_first_overlay_applies_default_transform():
    state = reduce(ComposerState(), SetBaseImage(BASE))
    state = reduce(state, SetPosition(Vector3(x=3)))

    state = reduce(state, SetOverlayImage(OVERLAY))

    assert state.position == DEFAULT_POSITION == Vector3(x=0, y=0.5, z=0.1)
    assert math.isclose(DEFAULT_ROTATION.x, math.pi / 2)
    assert state.scale == DEFAULT_SCALE == 0.8


def test_clearing_overlay_retains_transform():
    state = reduce(_composed(), SetPosition(Vector3(x=1, y=2, z=3)))
    state = reduce(state, SetScale(1.5))

    state = reduce(state, ClearOverlay())
    assert state.phase == Phase.BASE_ONLY
    assert state.overlay_image is None
    assert state.position == Vector3(x=1, y=2, z=3)

    state = reduce(state, SetOverlayImage("https://cdn.example.com/other.png"))
    assert state.phase == Phase.COMPOSED
    assert state.position == Vector3(x=1, y=2, z=3)
    assert state.scale == 1.5


def test_reset_returns_to_empty_with_defaults():
    state = reduce(reduce(_composed(), SetScale(2.5)), Reset())

    assert state == ComposerState()
    assert state.scale == DEFAULT_SCALE
    assert not state.overlay_placed


def test_share_failure_keeps_images_and_reports_error():
    state = reduce(reduce(_composed(), BeginShare()), ShareFailed("Failed to save"))

    assert state.phase == Phase.COMPOSED
    assert state.base_image == BASE
    assert state.overlay_image == OVERLAY
    assert state.error == "Failed to save"


@pytest.mark.parametrize("start, action", [
    (ComposerState(), SetOverlayImage(OVERLAY)),
    (ComposerState(), SetScale(1.0)),
    (ComposerState(), BeginShare()),
    ("base_only", BeginShare()),
    ("base_only", ClearOverlay()),
    ("composed", ShareSucceeded(RESULT)),
    ("submitting", SetBaseImage(BASE)),
    ("submitting", BeginShare()),
])
def test_invalid_transitions(start, action):
    states = {
        "base_only": reduce(ComposerState(), SetBaseImage(BASE)),
        "composed": _composed(),
        "submitting": reduce(_composed(), BeginShare()),
    }
    state = states.get(start, start)

    with pytest.raises(InvalidTransitionError):
        reduce(state, action)


@pytest.mark.parametrize("scale", [0, -1, float("nan"), float("inf")])
def test_scale_must_be_positive_and_finite(scale):
    with pytest.raises(ValueError):
        reduce(_composed(), SetScale(scale))


def test_edit_after_share_starts_a_new_draft():
    shared = reduce(reduce(_composed(), BeginShare()), ShareSucceeded(RESULT))

    state = reduce(shared, SetScale(1.2))

    assert state.phase == Phase.COMPOSED
    assert state.share is None


def test_submit_success_reports_progress():
    seen = []

    async def create_scene(base, overlay, position, rotation, scale):
        assert (base, overlay, scale) == (BASE, OVERLAY, DEFAULT_SCALE)
        return RESULT

    state = asyncio.run(submit(_composed(), create_scene, on_change=lambda s: seen.append(s.phase)))

    assert seen == [Phase.SUBMITTING]
    assert state.phase == Phase.SHARED
    assert state.share == RESULT


def test_submit_failure_returns_to_composed_with_user_message():
    async def create_scene(*args, **kwargs):
        raise ShareError("HTTP 500: stack trace here")

    state = asyncio.run(submit(_composed(), create_scene))

    assert state.phase == Phase.COMPOSED
    assert state.error == ShareError.message
    assert "stack trace" not in state.error


def test_dump_and_load_state():
    shared = reduce(reduce(_composed(), BeginShare()), ShareSucceeded(RESULT))

    restored = load_state(dump_state(shared))

    assert restored.phase == Phase.SHARED
    assert restored.base_image == BASE
    assert restored.overlay_image.startswith(OVERLAY + "?cb=")
    assert restored.position == shared.position
    assert restored.share == RESULT


def test_state_saved_mid_submit_loads_as_composed():
    restored = load_state(dump_state(reduce(_composed(), BeginShare())))
    assert restored.phase == Phase.COMPOSED


def test_file_round_trip_and_missing_file(tmp_path):
    path = tmp_path / "composer.json"
    assert load_from_file(path) == ComposerState()

    save_to_file(_composed(), path)
    assert load_from_file(path).phase == Phase.COMPOSED

    path.write_text("{not json", encoding="utf-8")
    assert load_from_file(path) == ComposerState()
