"""
ARShare Client
==============

Client-side pieces of the AR scene sharing flow:
- 2 images + overlay transform -> shared link -> rendered scene

Modules:
    - composer: editable scene state (reducer) and its save/load boundary
    - api: scene API client, including fetch-with-retry
    - retry: reusable exponential-backoff retry runner
    - viewer: plane layout and the shared-scene loading lifecycle
    - share_link: share URLs, QR codes and legacy query links
"""

__version__ = "0.1.0"

from .api import SceneApiClient
from .composer import ComposerState, Phase, reduce, submit
from .errors import SceneLoadError, SceneNotFoundError, ShareError, user_message
from .models import Scene, ShareResult, Vector3
from .retry import RetryPolicy, retry_async
from .share_link import build_share_url, make_qr_png, make_qr_svg
from .viewer import SceneViewer, build_planes

__all__ = [
    "SceneApiClient",
    "ComposerState",
    "Phase",
    "reduce",
    "submit",
    "SceneLoadError",
    "SceneNotFoundError",
    "ShareError",
    "user_message",
    "Scene",
    "ShareResult",
    "Vector3",
    "RetryPolicy",
    "retry_async",
    "build_share_url",
    "make_qr_png",
    "make_qr_svg",
    "SceneViewer",
    "build_planes",
]
