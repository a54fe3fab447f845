"""
Share links and QR codes for shared scenes.

Scenes created through the API are addressed by id (``/ar-view/<id>``).
Older links carried the whole scene in the query string
(``/ar-view?baseImage=...&posX=...``); those can still be built and parsed.
"""

import io
import time
from typing import Mapping, Union
from urllib.parse import parse_qsl, urlencode

import qrcode
import qrcode.image.svg
from pydantic import ValidationError

from ar_client.errors import SceneLoadError
from ar_client.models import Scene, Vector3

VIEW_PATH = "/ar-view"

_LEGACY_AXES = {
    "position": ("posX", "posY", "posZ"),
    "rotation": ("rotX", "rotY", "rotZ"),
}


def build_share_url(origin: str, scene_id: str) -> str:
    return f"{origin.rstrip('/')}{VIEW_PATH}/{scene_id}"


def _qr(url: str, box_size: int, border: int) -> qrcode.QRCode:
    code = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    code.add_data(url)
    code.make(fit=True)
    return code


def make_qr_png(url: str, box_size: int = 8, border: int = 4) -> bytes:
    """PNG bytes of a QR code encoding ``url``."""
    image = _qr(url, box_size, border).make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def make_qr_svg(url: str, box_size: int = 10, border: int = 4) -> str:
    image = _qr(url, box_size, border).make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    image.save(buffer)
    return buffer.getvalue().decode("utf-8")


def build_legacy_share_url(origin: str, scene: Scene) -> str:
    params = {"baseImage": scene.base_image}
    if scene.overlay_image:
        params["overlayImage"] = scene.overlay_image
    for field, keys in _LEGACY_AXES.items():
        for key, value in zip(keys, getattr(scene, field).as_tuple()):
            params[key] = repr(value)
    params["scale"] = repr(scene.scale)
    params["t"] = str(int(time.time() * 1000))
    return f"{origin.rstrip('/')}{VIEW_PATH}?{urlencode(params)}"


def parse_legacy_share_query(query: Union[str, Mapping[str, str]]) -> Scene:
    """
    Rebuild a scene from legacy query parameters.

    Missing transform values default to 0 (scale to 1).

    Raises:
        SceneLoadError: No base image, or a value that is not a number
    """
    params = dict(parse_qsl(query.lstrip("?"))) if isinstance(query, str) else dict(query)
    if not params.get("baseImage"):
        raise SceneLoadError("No base image provided")

    try:
        vectors = {
            field: Vector3(**{axis: float(params.get(key) or 0) for axis, key in zip("xyz", keys)})
            for field, keys in _LEGACY_AXES.items()
        }
        return Scene(
            base_image=params["baseImage"],
            overlay_image=params.get("overlayImage") or None,
            scale=float(params.get("scale") or 1),
            **vectors,
        )
    except (ValueError, ValidationError) as e:
        raise SceneLoadError(f"Invalid legacy share link: {e}") from e
