"""
Object key normalization and proxy URL encoding.

Callers outside the storage layer only ever see proxy URLs. A proxy URL is the
percent-encoded key appended to either the fixed ``/api/blob/`` prefix or a
configured public base (absolute URL or path fragment).
"""

import math
import random
import re
import string
import time
from urllib.parse import quote, unquote, urljoin, urlsplit, urlunsplit

from src.core.logging import get_logger

logger = get_logger(__name__)

BLOB_PROXY_PREFIX = "/api/blob/"

_BASE36_ALPHABET = string.digits + string.ascii_lowercase
_HTTP_URL_RE = re.compile(r"^https?:", re.IGNORECASE)
_ABSOLUTE_URL_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)
# Characters left alone by JavaScript's encodeURIComponent
_SEGMENT_SAFE = "-_.!~*'()"


def normalize_path(path: str) -> str:
    """Strip leading slashes. Internal empty segments are kept."""
    return path.lstrip("/")


def _encode_segment(segment: str) -> str:
    # Dot segments would be collapsed by URL resolution
    if segment in (".", ".."):
        return segment.replace(".", "%2E")
    return quote(segment, safe=_SEGMENT_SAFE)


def encode_path_for_url(path: str) -> str:
    """Percent-encode each ``/``-delimited segment independently."""
    return "/".join(_encode_segment(segment) for segment in path.split("/"))


def cache_control_from_seconds(seconds: float | None) -> str | None:
    """Build a public Cache-Control value from a max-age in seconds."""
    if seconds is None or isinstance(seconds, bool):
        return None
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return f"public, max-age={max(0, int(value))}"


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def apply_random_suffix(path: str) -> str:
    """
    Insert a random token before the key's extension.

    The token combines 8 random base36 characters with the current time in
    milliseconds. Only the last path segment is inspected for an extension.
    Uniqueness is practical, not cryptographic.
    """
    normalized = normalize_path(path)
    token = "".join(random.choices(_BASE36_ALPHABET, k=8))
    suffix = f"-{token}-{_to_base36(time.time_ns() // 1_000_000)}"

    directory, slash, filename = normalized.rpartition("/")
    index = filename.rfind(".")
    if index <= 0:
        filename = f"{filename}{suffix}"
    else:
        filename = f"{filename[:index]}{suffix}{filename[index:]}"
    return f"{directory}{slash}{filename}"


class ProxyUrlBuilder:
    """Maps object keys to proxy URLs and back."""

    def __init__(self, public_base_url: str | None = None) -> None:
        """
        Initialize the builder.

        Args:
            public_base_url: Optional override. An http(s) URL makes proxy
                links absolute; any other non-empty value is treated as a
                path fragment replacing ``/api/blob``.
        """
        self.public_base_url = (public_base_url or "").strip() or None

    def _absolute_base(self) -> str | None:
        override = self.public_base_url
        if not override or not _HTTP_URL_RE.match(override):
            return None
        parts = urlsplit(override)
        if not parts.netloc:
            logger.error(
                "proxy_url_override_invalid",
                override_preview=override[:120],
            )
            return None
        path = parts.path if parts.path.endswith("/") else f"{parts.path}/"
        return urlunsplit((parts.scheme, parts.netloc, path, "", ""))

    def _path_fragment(self) -> str | None:
        override = self.public_base_url
        if not override or _HTTP_URL_RE.match(override):
            return None
        fragment = override.strip("/")
        return fragment or None

    def build(self, key: str) -> str:
        """Build the proxy URL for an object key."""
        encoded = encode_path_for_url(normalize_path(key))

        base = self._absolute_base()
        if base is not None:
            return urljoin(base, encoded)

        fragment = self._path_fragment()
        if fragment is not None:
            return f"/{fragment}/{encoded}"

        return f"{BLOB_PROXY_PREFIX}{encoded}"

    def extract_key(self, value: str | None) -> str | None:
        """
        Recover an object key from a proxy URL, override URL or bare key.

        Returns:
            The normalized key, or None for empty input, data URIs and
            absolute URLs that do not point at this store.
        """
        if not value:
            return None
        if value.startswith("data:"):
            return None
        if value.startswith(BLOB_PROXY_PREFIX):
            return unquote(value[len(BLOB_PROXY_PREFIX):]) or None

        fragment = self._path_fragment()
        if fragment is not None and value.startswith(f"/{fragment}/"):
            return unquote(value[len(fragment) + 2:]) or None

        if _ABSOLUTE_URL_RE.match(value):
            return self._extract_from_absolute(value)

        return normalize_path(value) or None

    def _extract_from_absolute(self, value: str) -> str | None:
        try:
            url = urlsplit(value)
        except ValueError:
            return None

        if url.path.startswith(BLOB_PROXY_PREFIX):
            return unquote(url.path[len(BLOB_PROXY_PREFIX):]) or None

        base = self._absolute_base()
        if base is not None:
            base_parts = urlsplit(base)
            same_origin = (
                base_parts.scheme.lower() == url.scheme.lower()
                and base_parts.netloc.lower() == url.netloc.lower()
            )
            if same_origin and url.path.startswith(base_parts.path):
                relative = url.path[len(base_parts.path):].lstrip("/")
                return unquote(relative) or None

        return None
