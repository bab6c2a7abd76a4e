"""Data models for the fetch / crawl / link-validation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx


@dataclass
class FetchedPage:
    """The HTTP response for a single page fetch."""

    url: str
    html: str
    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    http_version: str = "1.1"
    elapsed_ms: Optional[int] = None

    @classmethod
    def from_response(cls, url: str, response: httpx.Response) -> "FetchedPage":
        elapsed_ms: Optional[int] = None
        try:
            elapsed_ms = int(response.elapsed.total_seconds() * 1000)
        except RuntimeError:
            # ``elapsed`` is only set once the response has been closed.
            pass
        return cls(
            url=url,
            html=response.text,
            status_code=response.status_code,
            headers=response.headers,
            http_version=response.http_version.replace("HTTP/", ""),
            elapsed_ms=elapsed_ms,
        )


@dataclass
class PageSample:
    """Lightweight feature sample for one crawled page.

    Every field except ``url`` is ``None`` when the page could not be fetched.
    """

    url: str
    status: Optional[int] = None
    title: Optional[str] = None
    heading_count: Optional[int] = None
    meta_description_present: Optional[bool] = None
    canonical_url: Optional[str] = None
    images_without_alt_count: Optional[int] = None
    script_asset_count: Optional[int] = None
    style_asset_count: Optional[int] = None
    largest_image_bytes: Optional[int] = None

    def to_summary(self) -> dict[str, Any]:
        """Serialise with the camelCase keys used in the audit summary."""
        return {
            "url": self.url,
            "status": self.status,
            "title": self.title,
            "h1Count": self.heading_count,
            "metaDescPresent": self.meta_description_present,
            "canonical": self.canonical_url,
            "imgWithoutAltCount": self.images_without_alt_count,
            "jsCount": self.script_asset_count,
            "cssCount": self.style_asset_count,
            "largestImageBytes": self.largest_image_bytes,
        }


@dataclass
class LinkCheckResult:
    """Outcome of validating every link (or image) found on a page."""

    total: int
    broken: List[str] = field(default_factory=list)
