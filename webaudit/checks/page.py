"""Run every pure check against the fetched root page.

``analyze_page`` parses the body once and applies each check in turn.  A
check that raises contributes its neutral default instead, so one bad
heuristic never costs the rest of the report.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from bs4 import BeautifulSoup

from webaudit.checks import accessibility, headers, seo
from webaudit.scraper.extractor import (
    count_images_without_alt,
    count_script_assets,
    count_style_assets,
    parse_html,
)
from webaudit.scraper.models import FetchedPage

logger = logging.getLogger(__name__)

PageCheck = Callable[[str, FetchedPage, BeautifulSoup], dict[str, Any]]


def _seo(url: str, page: FetchedPage, soup: BeautifulSoup) -> dict[str, Any]:
    return seo.extract_seo_tags(soup)


def _assets(url: str, page: FetchedPage, soup: BeautifulSoup) -> dict[str, Any]:
    return {
        "imagesWithoutAlt": count_images_without_alt(soup),
        "jsAssetCount": count_script_assets(soup),
        "cssAssetCount": count_style_assets(soup),
    }


def _security_headers(url: str, page: FetchedPage, soup: BeautifulSoup) -> dict[str, Any]:
    return headers.analyze_security_headers(page.headers)


def _cookies(url: str, page: FetchedPage, soup: BeautifulSoup) -> dict[str, Any]:
    return headers.analyze_cookies(page.headers.get_list("set-cookie"))


def _mixed_content(url: str, page: FetchedPage, soup: BeautifulSoup) -> dict[str, Any]:
    return {"mixedContent": headers.find_mixed_content(url, soup)}


def _response(url: str, page: FetchedPage, soup: BeautifulSoup) -> dict[str, Any]:
    meta = headers.response_metadata(page)
    meta["httpStatus"] = meta.pop("status")
    return meta


def _structured_data(url: str, page: FetchedPage, soup: BeautifulSoup) -> dict[str, Any]:
    result = seo.validate_schemas(soup)
    return {
        "structuredDataPresent": result["structuredDataPresent"],
        "structuredData": result["items"],
        "invalidStructuredData": result["invalidSchemas"],
    }


def _accessibility(url: str, page: FetchedPage, soup: BeautifulSoup) -> dict[str, Any]:
    return {"accessibilityViolations": accessibility.scan(soup)}


# (name, check, neutral default)
PAGE_CHECKS: list[tuple[str, PageCheck, dict[str, Any]]] = [
    (
        "seo",
        _seo,
        {
            "title": "",
            "metaDescPresent": False,
            "canonicalUrl": None,
            "robotsMeta": None,
            "robotsNoindex": False,
            "robotsNofollow": False,
            "openGraph": {},
            "twitterCard": {},
            "missingOpenGraph": [],
            "missingTwitter": [],
            "h1Count": 0,
            "hasMultipleH1": False,
        },
    ),
    ("assets", _assets, {"imagesWithoutAlt": 0, "jsAssetCount": 0, "cssAssetCount": 0}),
    (
        "security-headers",
        _security_headers,
        {"missingSecurityHeaders": [], "misconfiguredSecurityHeaders": []},
    ),
    ("cookies", _cookies, {"cookiesMissingSecure": 0, "cookiesMissingHttpOnly": 0}),
    ("mixed-content", _mixed_content, {"mixedContent": []}),
    (
        "response",
        _response,
        {
            "httpStatus": None,
            "ttfb": None,
            "httpVersion": None,
            "supportsHttp3": False,
            "compression": None,
            "cacheControl": None,
            "expires": None,
        },
    ),
    (
        "structured-data",
        _structured_data,
        {"structuredDataPresent": False, "structuredData": [], "invalidStructuredData": []},
    ),
    ("accessibility", _accessibility, {"accessibilityViolations": []}),
]


def analyze_page(url: str, page: FetchedPage) -> dict[str, Any]:
    """Return the merged output of every pure check for *page*."""
    soup = parse_html(page.html)
    results: dict[str, Any] = {}
    for name, check, default in PAGE_CHECKS:
        try:
            results.update(check(url, page, soup))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Check %r failed for %s: %s", name, url, exc)
            results.update(default)
    return results
