"""Tests for page fetching and HTML feature extraction.

Mocking strategy:
- ``respx`` patches ``httpx`` at the transport layer so no real network calls
  are made during fetch tests.
- Extraction tests work on literal HTML and need no mocking.
"""

from __future__ import annotations

import httpx
import pytest
import respx

from webaudit.config import settings
from webaudit.scraper.extractor import (
    anchor_hrefs,
    count_headings,
    count_images_without_alt,
    count_script_assets,
    count_style_assets,
    extract_canonical,
    extract_meta_description,
    extract_title,
    image_sources,
    origin_of,
    page_features,
    parse_html,
    resolve_urls,
)
from webaudit.scraper.fetcher import fetch_page, make_client, request_with_retry
from webaudit.scraper.models import FetchedPage


# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

_PAGE_HTML = """\
<!DOCTYPE html>
<html lang="en">
<head>
  <title>  Home  </title>
  <meta name="description" content="A test page">
  <link rel="canonical" href="https://example.com/">
  <link rel="stylesheet" href="/a.css">
  <link rel="preload stylesheet" href="/b.css">
  <link rel="icon" href="/favicon.ico">
  <script src="/app.js"></script>
  <script>window.inline = true;</script>
</head>
<body>
  <h1>One</h1>
  <h1>Two</h1>
  <img src="/a.png" alt="A">
  <img src="/b.png">
  <img src="/c.png" alt="">
  <a href="/x">x</a>
  <a href="mailto:hi@example.com">mail</a>
  <a href="/x">duplicate</a>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class TestExtractor:
    def test_title_is_stripped(self) -> None:
        assert extract_title(parse_html(_PAGE_HTML)) == "Home"

    def test_missing_title_is_empty(self) -> None:
        assert extract_title(parse_html("<html><body></body></html>")) == ""

    def test_meta_description(self) -> None:
        assert extract_meta_description(parse_html(_PAGE_HTML)) == "A test page"

    def test_canonical(self) -> None:
        assert extract_canonical(parse_html(_PAGE_HTML)) == "https://example.com/"

    def test_counts(self) -> None:
        soup = parse_html(_PAGE_HTML)
        assert count_headings(soup, "h1") == 2
        assert count_script_assets(soup) == 1
        assert count_style_assets(soup) == 2

    def test_images_without_alt_counts_missing_and_empty(self) -> None:
        assert count_images_without_alt(parse_html(_PAGE_HTML)) == 2

    def test_image_sources_skip_empty(self) -> None:
        soup = parse_html('<img src="/a.png"><img src=""><img alt="no src">')
        assert image_sources(soup) == ["/a.png"]

    def test_anchor_hrefs_in_document_order(self) -> None:
        assert anchor_hrefs(parse_html(_PAGE_HTML)) == ["/x", "mailto:hi@example.com", "/x"]

    def test_page_features(self) -> None:
        features = page_features(parse_html(_PAGE_HTML))
        assert features == {
            "title": "Home",
            "heading_count": 2,
            "meta_description_present": True,
            "canonical_url": "https://example.com/",
            "images_without_alt_count": 2,
            "script_asset_count": 1,
            "style_asset_count": 2,
        }

    def test_page_features_untitled(self) -> None:
        assert page_features(parse_html("<p>hi</p>"))["title"] is None


class TestResolveUrls:
    def test_resolves_filters_and_dedupes(self) -> None:
        refs = [
            "/x",
            "mailto:hi@example.com",
            "/x",
            "other",
            "https://example.com/x",
            "javascript:void(0)",
            "",
        ]
        assert resolve_urls("https://example.com/dir/page", refs) == [
            "https://example.com/x",
            "https://example.com/dir/other",
        ]

    def test_fragments_make_distinct_urls(self) -> None:
        urls = resolve_urls("https://example.com/", ["/a", "/a#b"])
        assert urls == ["https://example.com/a", "https://example.com/a#b"]

    def test_equivalent_spellings_collapse(self) -> None:
        refs = ["https://example.com", "https://example.com/", "HTTPS://Example.COM:443/"]
        assert resolve_urls("https://example.com/", refs) == ["https://example.com/"]

    def test_origin_of(self) -> None:
        assert origin_of("https://example.com:8443/a?b") == "https://example.com:8443"


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

class TestFetchPage:
    async def test_successful_fetch(self) -> None:
        with respx.mock:
            respx.get("https://example.com/").mock(
                return_value=httpx.Response(
                    200, text=_PAGE_HTML, headers={"content-encoding": "identity"}
                )
            )
            async with make_client() as client:
                page = await fetch_page(client, "https://example.com/")

        assert isinstance(page, FetchedPage)
        assert page.status_code == 200
        assert page.http_version == "1.1"
        assert "<title>" in page.html
        assert page.headers["content-encoding"] == "identity"

    async def test_http_error_raises(self) -> None:
        with respx.mock:
            respx.get("https://example.com/missing").mock(return_value=httpx.Response(404))
            async with make_client() as client:
                with pytest.raises(httpx.HTTPStatusError):
                    await fetch_page(client, "https://example.com/missing")

    async def test_user_agent_sent(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/").mock(return_value=httpx.Response(200))
            async with make_client() as client:
                await fetch_page(client, "https://example.com/")

        assert route.calls.last.request.headers["user-agent"] == settings.user_agent


class TestRequestWithRetry:
    async def test_transport_error_retried_once(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/").mock(
                side_effect=[httpx.ConnectError, httpx.Response(200, text="ok")]
            )
            async with make_client() as client:
                response = await request_with_retry(client, "GET", "https://example.com/", retries=1)

        assert response.status_code == 200
        assert route.call_count == 2

    async def test_gives_up_after_retries(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/").mock(side_effect=httpx.ConnectError)
            async with make_client() as client:
                with pytest.raises(httpx.ConnectError):
                    await request_with_retry(client, "GET", "https://example.com/", retries=1)

        assert route.call_count == 2

    async def test_http_errors_not_retried(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/").mock(return_value=httpx.Response(503))
            async with make_client() as client:
                response = await request_with_retry(client, "GET", "https://example.com/")

        assert response.status_code == 503
        assert route.call_count == 1
