"""Input hygiene for submitted audit targets."""

from __future__ import annotations

import re
from urllib.parse import urldefrag, urlparse, urlsplit, urlunsplit

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

_DEFAULT_PORTS = {"http": 80, "https": 443}


class InvalidUrlError(ValueError):
    """Raised when a submitted URL cannot be turned into an absolute http(s) URL."""


def normalize_url(raw: str) -> str:
    """Return *raw* as an absolute URL with a default ``https`` scheme.

    The fragment is stripped and the rest goes through :func:`canonical_url`
    so that ``example.com`` and ``https://Example.com:443/#top`` normalise
    to the same string.

    Raises:
        InvalidUrlError: If *raw* is empty or has no host after normalising.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidUrlError("URL must be a non-empty string")

    url = raw.strip()
    if not _SCHEME_RE.match(url):
        if "://" in url:
            raise InvalidUrlError(f"Unsupported URL scheme: {url!r}")
        url = f"https://{url}"

    url, _fragment = urldefrag(url)
    parsed = urlparse(url)
    if not parsed.hostname or " " in parsed.netloc:
        raise InvalidUrlError(f"Not an absolute URL: {raw!r}")
    try:
        parsed.port
    except ValueError as exc:
        raise InvalidUrlError(f"Invalid port in URL: {raw!r}") from exc

    return canonical_url(url)


def canonical_url(url: str) -> str:
    """Return *url* in the form used for comparing and deduplicating links.

    Scheme and host are lowercased, a default port is dropped and an empty
    path becomes ``/``, so ``https://Example.com:443`` and
    ``https://example.com/`` compare equal.  Query and fragment are kept.

    Raises:
        ValueError: If the port is not a number.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    netloc = host if port is None or port == _DEFAULT_PORTS.get(scheme) else f"{host}:{port}"
    if "@" in parts.netloc:
        netloc = f"{parts.netloc.rsplit('@', 1)[0]}@{netloc}"
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, parts.fragment))
