"""URL helpers: cache busting and renderer-friendly (absolute https) image URLs."""

import threading
import time
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

CACHE_BUST_PARAM = "cb"
LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}

_last_token = 0
_token_lock = threading.Lock()


def next_cache_token() -> str:
    """Current time in ms, bumped so consecutive tokens always differ."""
    global _last_token
    with _token_lock:
        _last_token = max(int(time.time() * 1000), _last_token + 1)
        return str(_last_token)


def add_cache_buster(url: str, token: str = None) -> str:
    if url.startswith("data:"):
        return url
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != CACHE_BUST_PARAM]
    query.append((CACHE_BUST_PARAM, token or next_cache_token()))
    return urlunsplit(parts._replace(query=urlencode(query)))


def to_renderer_url(url: str, base_url: str = None, token: str = None) -> str:
    """
    Absolute https URL with a cache-defeating parameter.

    Protocol-relative URLs get https, relative ones are resolved against
    ``base_url`` and plain http is upgraded unless it points at a loopback
    host. Data URLs are returned untouched.
    """
    if url.startswith("data:"):
        return url
    if url.startswith("//"):
        url = "https:" + url
    elif base_url and not urlsplit(url).scheme:
        url = urljoin(base_url, url)

    parts = urlsplit(url)
    if parts.scheme == "http" and parts.hostname not in LOOPBACK_HOSTS:
        parts = parts._replace(scheme="https")
    return add_cache_buster(urlunsplit(parts), token)
