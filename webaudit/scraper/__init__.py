"""Scraper package: page fetch, feature extraction, crawl and link checks."""

from webaudit.scraper.crawler import crawl
from webaudit.scraper.fetcher import fetch_page, make_client, request_with_retry
from webaudit.scraper.links import check_broken_images, check_broken_links, validate
from webaudit.scraper.models import FetchedPage, LinkCheckResult, PageSample

__all__ = [
    "crawl",
    "fetch_page",
    "make_client",
    "request_with_retry",
    "validate",
    "check_broken_links",
    "check_broken_images",
    "FetchedPage",
    "LinkCheckResult",
    "PageSample",
]
