"""Tests for the site-level probes (robots/sitemap, Safe Browsing, PageSpeed)."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from webaudit.checks import site
from webaudit.config import settings
from webaudit.scraper.fetcher import make_client

SITE = "https://example.com/"


@pytest.fixture()
def no_api_keys(monkeypatch):
    monkeypatch.setattr(settings, "safe_browsing_api_key", "")
    monkeypatch.setattr(settings, "pagespeed_api_key", "")


class TestPathProbes:
    async def test_robots_present_sitemap_absent(self) -> None:
        with respx.mock:
            respx.get("https://example.com/robots.txt").mock(
                return_value=httpx.Response(200, text="User-agent: *")
            )
            respx.get("https://example.com/sitemap.xml").mock(return_value=httpx.Response(404))
            async with make_client() as client:
                assert await site.robots_txt_exists(client, SITE) is True
                assert await site.sitemap_exists(client, SITE) is False

    async def test_probe_resolves_from_site_root(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/robots.txt").mock(return_value=httpx.Response(200))
            async with make_client() as client:
                assert await site.robots_txt_exists(client, "https://example.com/blog/post") is True
        assert route.called

    async def test_unreachable_is_false(self) -> None:
        with respx.mock:
            respx.get("https://example.com/robots.txt").mock(side_effect=httpx.ConnectError)
            async with make_client() as client:
                assert await site.robots_txt_exists(client, SITE) is False


class TestSafeBrowsing:
    async def test_without_key_makes_no_request(self, no_api_keys) -> None:
        with respx.mock:
            async with make_client() as client:
                assert await site.check_safe_browsing(client, SITE) == []

    async def test_threats_deduplicated(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "safe_browsing_api_key", "sb-key")
        with respx.mock:
            route = respx.post(host="safebrowsing.googleapis.com").mock(
                return_value=httpx.Response(
                    200,
                    json={
                        "matches": [
                            {"threatType": "MALWARE"},
                            {"threatType": "MALWARE"},
                            {"threatType": "SOCIAL_ENGINEERING"},
                        ]
                    },
                )
            )
            async with make_client() as client:
                threats = await site.check_safe_browsing(client, SITE)

        assert threats == ["MALWARE", "SOCIAL_ENGINEERING"]
        request = route.calls.last.request
        assert request.url.params["key"] == "sb-key"
        body = json.loads(request.content)
        assert body["threatInfo"]["threatEntries"] == [{"url": SITE}]

    async def test_clean_site(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "safe_browsing_api_key", "sb-key")
        with respx.mock:
            respx.post(host="safebrowsing.googleapis.com").mock(
                return_value=httpx.Response(200, json={})
            )
            async with make_client() as client:
                assert await site.check_safe_browsing(client, SITE) == []

    async def test_api_error_is_empty(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "safe_browsing_api_key", "sb-key")
        with respx.mock:
            respx.post(host="safebrowsing.googleapis.com").mock(return_value=httpx.Response(403))
            async with make_client() as client:
                assert await site.check_safe_browsing(client, SITE) == []


_PAGESPEED_RESPONSE = {
    "lighthouseResult": {
        "categories": {
            "performance": {"score": 0.91},
            "accessibility": {"score": 1},
            "best-practices": {"score": 0.83},
            "seo": {"score": None},
        }
    },
    "loadingExperience": {
        "metrics": {
            "LARGEST_CONTENTFUL_PAINT_MS": {"percentile": 2100},
            "CUMULATIVE_LAYOUT_SHIFT_SCORE": {"percentile": 5},
        }
    },
}


class TestPageSpeed:
    async def test_scores_and_field_metrics(self, no_api_keys) -> None:
        with respx.mock:
            route = respx.get(host="www.googleapis.com").mock(
                return_value=httpx.Response(200, json=_PAGESPEED_RESPONSE)
            )
            async with make_client() as client:
                scores = await site.fetch_pagespeed_scores(client, SITE)

        assert scores == {
            "performance": 0.91,
            "accessibility": 1,
            "bestPractices": 0.83,
            "seo": None,
            "lcp": 2100,
            "fid": None,
            "inp": None,
            "cls": 5,
        }
        params = route.calls.last.request.url.params
        assert params["url"] == SITE
        assert params.get_list("category") == site.PAGESPEED_CATEGORIES
        assert "key" not in params

    async def test_api_key_appended(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "pagespeed_api_key", "psi-key")
        with respx.mock:
            route = respx.get(host="www.googleapis.com").mock(
                return_value=httpx.Response(200, json={})
            )
            async with make_client() as client:
                await site.fetch_pagespeed_scores(client, SITE)
        assert route.calls.last.request.url.params["key"] == "psi-key"

    async def test_failure_returns_empty_scores(self, no_api_keys) -> None:
        with respx.mock:
            respx.get(host="www.googleapis.com").mock(return_value=httpx.Response(429))
            async with make_client() as client:
                scores = await site.fetch_pagespeed_scores(client, SITE)
        assert set(scores) == {"performance", "accessibility", "bestPractices", "seo", "lcp", "fid", "inp", "cls"}
        assert all(value is None for value in scores.values())
