"""URL normalization for payloads sent to viewers.

Uploaded assets are stored as server-relative paths (``/objects/...``).
Viewers run on other hosts, so every URL that leaves the server must be
absolute. Normalization is idempotent: an absolute URL is never rewritten.
"""

from typing import Any, Optional
from urllib.parse import urlsplit

import structlog

logger = structlog.get_logger()

OBJECT_PATH_PREFIX = "/objects/"


def is_absolute_url(value: str) -> bool:
    parts = urlsplit(value)
    return bool(parts.scheme) and (bool(parts.netloc) or parts.scheme == "data")


def normalize_url(value: Optional[str], base_url: str) -> Optional[str]:
    """Rewrite a relative path to an absolute URL under ``base_url``.

    Empty values and absolute URLs pass through unchanged.
    """
    if not value:
        return value
    value = value.strip()
    if is_absolute_url(value) or value.startswith("//"):
        return value
    base = base_url.rstrip("/")
    if value.startswith("/"):
        return f"{base}{value}"
    return f"{base}/{value}"


def normalize_urls(value: Any, base_url: str) -> Any:
    """Recursively absolutize object-storage paths inside a JSON value.

    Only strings that start with ``/objects/`` are rewritten; other strings
    in a component config (titles, link targets) are left alone.
    """
    if value is None:
        return None
    if isinstance(value, str):
        if value.startswith(OBJECT_PATH_PREFIX):
            return f"{base_url.rstrip('/')}{value}"
        return value
    if isinstance(value, list):
        return [normalize_urls(item, base_url) for item in value]
    if isinstance(value, dict):
        return {key: normalize_urls(val, base_url) for key, val in value.items()}
    return value


class BaseUrlResolver:
    """Resolves the public base URL of this server.

    Order: configured public URL, then the first request-derived URL (cached
    so background work like the scheduler can use it), then a localhost
    fallback built from the HTTP port.
    """

    def __init__(self, public_url: str = "", port: int = 5000):
        self._configured = public_url.rstrip("/") if public_url else ""
        self._derived: Optional[str] = None
        self._port = port

    def resolve(self, scheme: Optional[str] = None, host: Optional[str] = None) -> str:
        if self._configured:
            return self._configured
        if self._derived:
            return self._derived
        if scheme and host:
            self._derived = f"{scheme}://{host}"
            logger.info("urls.base_url_derived", base_url=self._derived)
            return self._derived
        fallback = f"http://localhost:{self._port}"
        logger.warning("urls.base_url_fallback", base_url=fallback)
        return fallback

    def from_request(self, request) -> str:
        """Resolve using a Starlette request, honouring X-Forwarded-* headers."""
        scheme = request.headers.get("x-forwarded-proto", request.url.scheme)
        host = request.headers.get("x-forwarded-host") or request.headers.get("host")
        return self.resolve(scheme.split(",")[0].strip(), host)
