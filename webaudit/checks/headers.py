"""Checks that are pure functions of the root page's response headers and body."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Optional

from bs4 import BeautifulSoup

from webaudit.scraper.models import FetchedPage

REQUIRED_SECURITY_HEADERS = [
    "content-security-policy",
    "x-frame-options",
    "x-content-type-options",
    "strict-transport-security",
    "referrer-policy",
    "permissions-policy",
    "cross-origin-opener-policy",
    "cross-origin-embedder-policy",
]

# Header -> accepted values (substring match, case-insensitive).
RECOMMENDED_SECURITY_HEADER_VALUES: dict[str, list[str]] = {
    "x-frame-options": ["deny", "sameorigin"],
    "x-content-type-options": ["nosniff"],
    "cross-origin-opener-policy": ["same-origin"],
    "cross-origin-embedder-policy": ["require-corp"],
}

_H3_RE = re.compile(r"h3", re.IGNORECASE)


def analyze_security_headers(headers: Mapping[str, str]) -> dict[str, list[str]]:
    """Report required security headers that are absent or set to weak values."""
    lowered = {k.lower(): v for k, v in headers.items()}
    missing = [h for h in REQUIRED_SECURITY_HEADERS if not lowered.get(h)]
    misconfigured = []
    for header, accepted in RECOMMENDED_SECURITY_HEADER_VALUES.items():
        actual = lowered.get(header)
        if not actual:
            continue
        if not any(value in actual.lower() for value in accepted):
            misconfigured.append(header)
    return {
        "missingSecurityHeaders": missing,
        "misconfiguredSecurityHeaders": misconfigured,
    }


def analyze_cookies(set_cookie_values: Iterable[str]) -> dict[str, int]:
    """Count ``Set-Cookie`` values lacking the ``Secure`` / ``HttpOnly`` flags."""
    missing_secure = 0
    missing_http_only = 0
    for cookie in set_cookie_values:
        lower = cookie.lower()
        if "secure" not in lower:
            missing_secure += 1
        if "httponly" not in lower:
            missing_http_only += 1
    return {
        "cookiesMissingSecure": missing_secure,
        "cookiesMissingHttpOnly": missing_http_only,
    }


def find_mixed_content(url: str, soup: BeautifulSoup) -> list[str]:
    """Return plain-``http://`` sub-resources referenced by an HTTPS page."""
    if not url.startswith("https://"):
        return []
    found = []
    for tag in soup.find_all(["script", "link", "img", "iframe"]):
        ref = tag.get("src") or tag.get("href")
        if ref and ref.startswith("http://"):
            found.append(ref)
    return found


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    return headers.get(name) or None


def response_metadata(page: FetchedPage) -> dict[str, Any]:
    """Transport-level facts about the root response."""
    alt_svc = page.headers.get("alt-svc", "")
    return {
        "status": page.status_code,
        "ttfb": page.elapsed_ms,
        "httpVersion": page.http_version,
        "supportsHttp3": bool(_H3_RE.search(alt_svc)),
        "compression": _header(page.headers, "content-encoding"),
        "cacheControl": _header(page.headers, "cache-control"),
        "expires": _header(page.headers, "expires"),
    }
