"""Site-level probes: robots.txt, sitemap, Safe Browsing and PageSpeed.

Every probe returns its neutral default instead of raising when the remote
service is unreachable, misconfigured, or answers with an error.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urljoin

import httpx

from webaudit.config import settings
from webaudit.scraper.fetcher import request_with_retry

logger = logging.getLogger(__name__)

PAGESPEED_API = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
SAFE_BROWSING_API = "https://safebrowsing.googleapis.com/v4/threatMatches:find"

PAGESPEED_CATEGORIES = ["performance", "accessibility", "best-practices", "seo"]

_FIELD_METRICS = {
    "lcp": "LARGEST_CONTENTFUL_PAINT_MS",
    "fid": "FIRST_INPUT_DELAY_MS",
    "inp": "EXPERIMENTAL_INTERACTION_TO_NEXT_PAINT",
    "cls": "CUMULATIVE_LAYOUT_SHIFT_SCORE",
}

_THREAT_TYPES = [
    "MALWARE",
    "SOCIAL_ENGINEERING",
    "UNWANTED_SOFTWARE",
    "POTENTIALLY_HARMFUL_APPLICATION",
]


async def _path_exists(client: httpx.AsyncClient, site_url: str, path: str) -> bool:
    try:
        response = await request_with_retry(
            client, "GET", urljoin(site_url, path), timeout=settings.probe_timeout
        )
    except httpx.HTTPError as exc:
        logger.warning("Probe of %s on %s failed: %s", path, site_url, exc)
        return False
    return response.is_success


async def robots_txt_exists(client: httpx.AsyncClient, site_url: str) -> bool:
    return await _path_exists(client, site_url, "/robots.txt")


async def sitemap_exists(client: httpx.AsyncClient, site_url: str) -> bool:
    return await _path_exists(client, site_url, "/sitemap.xml")


async def check_safe_browsing(client: httpx.AsyncClient, site_url: str) -> list[str]:
    """Return the Safe Browsing threat types matching *site_url*.

    Requires ``SAFE_BROWSING_API_KEY``; returns ``[]`` without it.
    """
    if not settings.safe_browsing_api_key:
        return []
    body = {
        "client": {"clientId": "webaudit", "clientVersion": "1.0"},
        "threatInfo": {
            "threatTypes": _THREAT_TYPES,
            "platformTypes": ["ANY_PLATFORM"],
            "threatEntryTypes": ["URL"],
            "threatEntries": [{"url": site_url}],
        },
    }
    try:
        response = await request_with_retry(
            client,
            "POST",
            SAFE_BROWSING_API,
            params={"key": settings.safe_browsing_api_key},
            json=body,
            timeout=settings.probe_timeout,
        )
        response.raise_for_status()
        matches = response.json().get("matches") or []
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Safe Browsing lookup for %s failed: %s", site_url, exc)
        return []
    threats: list[str] = []
    for match in matches:
        threat = match.get("threatType")
        if threat and threat not in threats:
            threats.append(threat)
    return threats


def _score(categories: dict[str, Any], key: str) -> Optional[float]:
    value = (categories.get(key) or {}).get("score")
    return value if isinstance(value, (int, float)) else None


async def fetch_pagespeed_scores(client: httpx.AsyncClient, site_url: str) -> dict[str, Any]:
    """Lighthouse category scores and field Core Web Vitals for *site_url*."""
    scores: dict[str, Any] = {
        "performance": None,
        "accessibility": None,
        "bestPractices": None,
        "seo": None,
        **{name: None for name in _FIELD_METRICS},
    }
    params: list[tuple[str, str]] = [("url", site_url)]
    params.extend(("category", c) for c in PAGESPEED_CATEGORIES)
    if settings.pagespeed_api_key:
        params.append(("key", settings.pagespeed_api_key))

    try:
        response = await request_with_retry(
            client, "GET", PAGESPEED_API, params=params, timeout=settings.pagespeed_timeout
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("PageSpeed lookup for %s failed: %s", site_url, exc)
        return scores

    categories = (data.get("lighthouseResult") or {}).get("categories") or {}
    scores["performance"] = _score(categories, "performance")
    scores["accessibility"] = _score(categories, "accessibility")
    scores["bestPractices"] = _score(categories, "best-practices")
    scores["seo"] = _score(categories, "seo")

    metrics = (data.get("loadingExperience") or {}).get("metrics") or {}
    for name, key in _FIELD_METRICS.items():
        percentile = (metrics.get(key) or {}).get("percentile")
        if isinstance(percentile, (int, float)):
            scores[name] = percentile
    return scores
