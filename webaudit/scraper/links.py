"""Broken link / image detection with a bounded pool of async workers.

Each unique URL is probed with ``HEAD``; servers that answer ``405 Method Not
Allowed`` or ``501 Not Implemented`` get a second chance with ``GET``.  A URL
is broken when the final status is >= 400 or the probe raised.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Literal, Optional

import httpx

from webaudit.config import settings
from webaudit.scraper.extractor import anchor_hrefs, image_sources, parse_html, resolve_urls
from webaudit.scraper.fetcher import request_with_retry
from webaudit.scraper.models import LinkCheckResult

logger = logging.getLogger(__name__)

LinkKind = Literal["link", "image"]

_FALLBACK_STATUSES = (405, 501)


def collect_candidates(base_url: str, html: str, kind: LinkKind) -> List[str]:
    """Return the deduplicated absolute http(s) URLs of *kind* found in *html*."""
    soup = parse_html(html)
    refs = anchor_hrefs(soup) if kind == "link" else image_sources(soup)
    return resolve_urls(base_url, refs)


async def is_broken(client: httpx.AsyncClient, url: str) -> bool:
    """Probe *url* and report whether it should be counted as broken."""
    try:
        response = await request_with_retry(client, "HEAD", url, timeout=settings.link_timeout)
        if response.status_code in _FALLBACK_STATUSES:
            response = await request_with_retry(client, "GET", url, timeout=settings.link_timeout)
        return response.status_code >= 400
    except Exception as exc:  # noqa: BLE001
        logger.debug("Probe failed for %s: %s", url, exc)
        return True


async def validate(
    client: httpx.AsyncClient,
    base_url: str,
    html: str,
    kind: LinkKind = "link",
    concurrency: Optional[int] = None,
) -> LinkCheckResult:
    """Find every *kind* URL in *html* and report which ones are unreachable.

    ``min(concurrency, len(urls))`` workers share a single cursor into the
    candidate list.  Claiming the next URL is one synchronous statement with
    no ``await`` in between, so under asyncio's cooperative scheduling no two
    workers ever claim the same index.

    Returns:
        ``total`` is the number of distinct candidate URLs; ``broken`` lists
        the unreachable ones in completion order.
    """
    limit = concurrency if concurrency is not None else settings.link_concurrency
    urls = collect_candidates(base_url, html, kind)
    broken: List[str] = []
    cursor = 0

    async def worker() -> None:
        nonlocal cursor
        while cursor < len(urls):
            current = urls[cursor]
            cursor += 1
            if await is_broken(client, current):
                broken.append(current)

    workers = [worker() for _ in range(min(max(limit, 1), len(urls)))]
    await asyncio.gather(*workers)

    logger.info("Checked %d %s URL(s) on %s: %d broken", len(urls), kind, base_url, len(broken))
    return LinkCheckResult(total=len(urls), broken=broken)


async def check_broken_links(
    client: httpx.AsyncClient,
    base_url: str,
    html: str,
    concurrency: Optional[int] = None,
) -> LinkCheckResult:
    return await validate(client, base_url, html, "link", concurrency)


async def check_broken_images(
    client: httpx.AsyncClient,
    base_url: str,
    html: str,
    concurrency: Optional[int] = None,
) -> LinkCheckResult:
    return await validate(client, base_url, html, "image", concurrency)
