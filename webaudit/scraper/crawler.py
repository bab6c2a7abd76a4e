"""Breadth-first crawl of a bounded number of same-origin pages."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List, Optional, Tuple
from urllib.parse import urldefrag

import httpx
from bs4 import BeautifulSoup

from webaudit.config import settings
from webaudit.scraper.extractor import (
    anchor_hrefs,
    image_sources,
    origin_of,
    page_features,
    parse_html,
    resolve_urls,
)
from webaudit.scraper.fetcher import fetch_page, request_with_retry
from webaudit.scraper.models import PageSample
from webaudit.urls import canonical_url

logger = logging.getLogger(__name__)


async def largest_image_bytes(
    client: httpx.AsyncClient,
    soup: BeautifulSoup,
    page_url: str,
    limit: Optional[int] = None,
) -> int:
    """HEAD the first *limit* images on the page and return the largest size.

    Sizes come from ``Content-Length``; images that fail or omit the header
    count as zero.
    """
    limit = settings.crawl_image_samples if limit is None else limit
    largest = 0
    for src in resolve_urls(page_url, image_sources(soup))[:limit]:
        try:
            head = await request_with_retry(client, "HEAD", src, timeout=settings.link_timeout)
            size = int(head.headers.get("content-length", "0") or 0)
        except (httpx.HTTPError, ValueError):
            continue
        largest = max(largest, size)
    return largest


async def crawl(
    client: httpx.AsyncClient,
    base_url: str,
    root_html: str,
    max_depth: Optional[int] = None,
    max_pages: Optional[int] = None,
) -> List[PageSample]:
    """Visit up to *max_pages* same-origin pages linked from the root page.

    Pages are fetched one at a time in breadth-first order.  A page that
    cannot be fetched yields a sample carrying only its URL and (when the
    server answered) its status code; the crawl continues.

    Args:
        client: Shared HTTP client for this audit.
        base_url: The audited URL; it is never revisited.
        root_html: Body of the already-fetched root page.
        max_depth: Links found at this depth are not followed.
        max_pages: Upper bound on visited pages and on queue growth.

    Returns:
        One :class:`PageSample` per visited page, in visit order.
    """
    max_depth = settings.crawl_max_depth if max_depth is None else max_depth
    max_pages = settings.crawl_max_pages if max_pages is None else max_pages

    root_url = canonical_url(urldefrag(base_url)[0])
    origin = origin_of(root_url)
    visited: set[str] = set()
    queued: set[str] = set()
    queue: Deque[Tuple[str, int]] = deque()
    results: List[PageSample] = []

    def collect_links(soup: BeautifulSoup, page_url: str, depth: int) -> None:
        for absolute in resolve_urls(page_url, anchor_hrefs(soup)):
            if len(results) + len(queue) >= max_pages:
                return
            absolute, _fragment = urldefrag(absolute)
            if origin_of(absolute) != origin or absolute == root_url:
                continue
            if absolute in visited or absolute in queued:
                continue
            queued.add(absolute)
            queue.append((absolute, depth))

    collect_links(parse_html(root_html), base_url, 1)

    while queue and len(results) < max_pages:
        url, depth = queue.popleft()
        if depth > max_depth or url in visited:
            continue
        visited.add(url)

        try:
            page = await fetch_page(client, url, timeout=settings.crawl_timeout)
        except httpx.HTTPStatusError as exc:
            logger.info("Crawl: %s answered %s", url, exc.response.status_code)
            results.append(PageSample(url=url, status=exc.response.status_code))
            continue
        except httpx.HTTPError as exc:
            logger.info("Crawl: %s unreachable (%s)", url, exc)
            results.append(PageSample(url=url))
            continue

        soup = parse_html(page.html)
        results.append(
            PageSample(
                url=url,
                status=page.status_code,
                largest_image_bytes=await largest_image_bytes(client, soup, url),
                **page_features(soup),
            )
        )

        if depth < max_depth and len(results) < max_pages:
            collect_links(soup, url, depth + 1)

    logger.info("Crawled %d page(s) from %s", len(results), base_url)
    return results
