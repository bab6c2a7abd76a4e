"""Tests for the pure page checks and the TLS helpers.

Header, SEO, accessibility and structured-data checks are plain functions of
the parsed root page, so these tests need no network.  The SSL Labs lookup is
mocked with ``respx``; the raw TLS handshake is only exercised for its
non-HTTPS short-circuit.
"""

from __future__ import annotations

import ssl
from unittest.mock import patch

import httpx
import respx

from webaudit.checks import accessibility, headers, seo
from webaudit.checks.page import PAGE_CHECKS, analyze_page
from webaudit.checks.tls import fetch_ssl_labs, fetch_tls_info, summarize_certificate
from webaudit.scraper.extractor import parse_html
from webaudit.scraper.fetcher import make_client
from webaudit.scraper.models import FetchedPage


# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

_SEO_HTML = """\
<html lang="en"><head>
  <title>Shop</title>
  <meta name="description" content="Buy things">
  <meta name="robots" content="NOINDEX, follow">
  <link rel="canonical" href="https://shop.example/">
  <meta property="og:title" content="Shop">
  <meta property="og:image" content="https://shop.example/og.png">
  <meta name="twitter:card" content="summary">
  <script type="application/ld+json">{"@context": "https://schema.org", "@type": "Organization"}</script>
  <script type="application/ld+json">[{"@context": "https://schema.org", "@type": "WebSite"}, {"name": "no type"}]</script>
  <script type="application/ld+json">{not json</script>
</head><body><h1>Shop</h1></body></html>
"""

_GOOD_HEADERS = {
    "Content-Security-Policy": "default-src 'self'",
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=63072000",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=()",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Embedder-Policy": "require-corp",
}


def _page(html: str = "", headers=None, url: str = "https://example.com/") -> FetchedPage:
    return FetchedPage(
        url=url,
        html=html,
        status_code=200,
        headers=httpx.Headers(headers or {}),
        http_version="2",
        elapsed_ms=42,
    )


# ---------------------------------------------------------------------------
# Security headers / cookies / mixed content
# ---------------------------------------------------------------------------

class TestSecurityHeaders:
    def test_all_present_and_strong(self) -> None:
        result = headers.analyze_security_headers(httpx.Headers(_GOOD_HEADERS))
        assert result == {"missingSecurityHeaders": [], "misconfiguredSecurityHeaders": []}

    def test_missing_and_weak(self) -> None:
        given = dict(_GOOD_HEADERS)
        del given["Content-Security-Policy"]
        del given["Permissions-Policy"]
        given["X-Frame-Options"] = "allow-from http://evil.com"
        result = headers.analyze_security_headers(httpx.Headers(given))
        assert "content-security-policy" in result["missingSecurityHeaders"]
        assert "permissions-policy" in result["missingSecurityHeaders"]
        assert result["misconfiguredSecurityHeaders"] == ["x-frame-options"]

    def test_no_headers(self) -> None:
        result = headers.analyze_security_headers({})
        assert result["missingSecurityHeaders"] == headers.REQUIRED_SECURITY_HEADERS
        assert result["misconfiguredSecurityHeaders"] == []


class TestCookies:
    def test_flags_counted(self) -> None:
        result = headers.analyze_cookies(
            [
                "a=1; Path=/; Secure; HttpOnly",
                "b=2; Path=/",
                "c=3; Secure",
            ]
        )
        assert result == {"cookiesMissingSecure": 1, "cookiesMissingHttpOnly": 2}


class TestMixedContent:
    _HTML = """\
    <script src="http://cdn.example.net/a.js"></script>
    <link rel="stylesheet" href="http://cdn.example.net/a.css">
    <img src="https://cdn.example.net/ok.png">
    <iframe src="http://video.example.net/embed"></iframe>
    <a href="http://plain-link.example.net/">links are not sub-resources</a>
    """

    def test_https_page(self) -> None:
        found = headers.find_mixed_content("https://example.com/", parse_html(self._HTML))
        assert found == [
            "http://cdn.example.net/a.js",
            "http://cdn.example.net/a.css",
            "http://video.example.net/embed",
        ]

    def test_http_page_has_none(self) -> None:
        assert headers.find_mixed_content("http://example.com/", parse_html(self._HTML)) == []


class TestResponseMetadata:
    def test_fields(self) -> None:
        page = _page(
            headers={
                "alt-svc": 'h3=":443"; ma=86400',
                "content-encoding": "br",
                "cache-control": "max-age=600",
            }
        )
        assert headers.response_metadata(page) == {
            "status": 200,
            "ttfb": 42,
            "httpVersion": "2",
            "supportsHttp3": True,
            "compression": "br",
            "cacheControl": "max-age=600",
            "expires": None,
        }


# ---------------------------------------------------------------------------
# SEO / structured data
# ---------------------------------------------------------------------------

class TestSeoTags:
    def test_extracts_tags(self) -> None:
        tags = seo.extract_seo_tags(parse_html(_SEO_HTML))
        assert tags["title"] == "Shop"
        assert tags["metaDescPresent"] is True
        assert tags["canonicalUrl"] == "https://shop.example/"
        assert tags["robotsNoindex"] is True
        assert tags["robotsNofollow"] is False
        assert tags["openGraph"] == {
            "og:title": "Shop",
            "og:image": "https://shop.example/og.png",
        }
        assert tags["missingOpenGraph"] == ["og:description"]
        assert tags["missingTwitter"] == ["twitter:title", "twitter:description", "twitter:image"]
        assert tags["h1Count"] == 1
        assert tags["hasMultipleH1"] is False

    def test_bare_page(self) -> None:
        tags = seo.extract_seo_tags(parse_html("<p>hi</p>"))
        assert tags["title"] == ""
        assert tags["robotsMeta"] is None
        assert tags["missingOpenGraph"] == seo.REQUIRED_OPEN_GRAPH
        assert tags["hasMultipleH1"] is True


class TestValidateSchemas:
    def test_valid_and_invalid(self) -> None:
        result = seo.validate_schemas(parse_html(_SEO_HTML))
        assert result["structuredDataPresent"] is True
        assert result["items"] == ["Organization", "WebSite"]
        assert result["validCount"] == 2
        errors = [entry["error"] for entry in result["invalidSchemas"]]
        assert len(errors) == 2
        assert "Missing @context or @type" in errors

    def test_absent(self) -> None:
        result = seo.validate_schemas(parse_html("<p>hi</p>"))
        assert result == {
            "structuredDataPresent": False,
            "validCount": 0,
            "items": [],
            "invalidSchemas": [],
        }


# ---------------------------------------------------------------------------
# Accessibility
# ---------------------------------------------------------------------------

class TestAccessibilityScan:
    def test_clean_page(self) -> None:
        html = """\
        <html lang="en"><head><title>Ok</title></head><body>
          <img src="/a.png" alt="A">
          <label for="q">Search</label><input id="q" type="text">
          <button>Go</button>
          <a href="/x">More</a>
        </body></html>
        """
        assert accessibility.scan(parse_html(html)) == []

    def test_violations_in_rule_order(self) -> None:
        html = """\
        <html><head></head><body>
          <img src="/a.png">
          <input type="email">
          <input type="hidden" name="csrf">
          <button></button>
          <a href="/x"><img src="/icon.png" alt=""></a>
          <div tabindex="3">focus trap</div>
        </body></html>
        """
        ids = [v.split(":", 1)[0] for v in accessibility.scan(parse_html(html))]
        assert ids == [
            "image-alt",
            "html-has-lang",
            "document-title",
            "label",
            "button-name",
            "link-name",
            "tabindex",
        ]

    def test_labelled_by_wrapping_label(self) -> None:
        html = '<html lang="en"><title>t</title><label>Name <input type="text"></label></html>'
        assert accessibility.scan(parse_html(html)) == []


# ---------------------------------------------------------------------------
# analyze_page
# ---------------------------------------------------------------------------

class TestAnalyzePage:
    def test_merges_every_check(self) -> None:
        page = _page(
            html=_SEO_HTML + '<img src="http://cdn.example.net/x.png">',
            headers={**_GOOD_HEADERS, "set-cookie": "sid=1; Path=/"},
        )
        result = analyze_page("https://example.com/", page)
        for _name, _check, default in PAGE_CHECKS:
            assert set(default) <= set(result)
        assert result["httpStatus"] == 200
        assert "status" not in result
        assert result["imagesWithoutAlt"] == 1
        assert result["mixedContent"] == ["http://cdn.example.net/x.png"]
        assert result["cookiesMissingSecure"] == 1
        assert result["structuredData"] == ["Organization", "WebSite"]

    def test_failing_check_uses_default(self) -> None:
        with patch("webaudit.checks.seo.extract_seo_tags", side_effect=RuntimeError("bad")):
            result = analyze_page("https://example.com/", _page(html=_SEO_HTML))
        assert result["title"] == ""
        assert result["h1Count"] == 0
        # Other checks are unaffected.
        assert result["structuredData"] == ["Organization", "WebSite"]


# ---------------------------------------------------------------------------
# TLS
# ---------------------------------------------------------------------------

_CERT = {
    "issuer": (
        (("countryName", "US"),),
        (("organizationName", "Let's Encrypt"),),
        (("commonName", "R3"),),
    ),
    "notBefore": "Jan  1 00:00:00 2024 GMT",
    "notAfter": "Apr  1 00:00:00 2024 GMT",
}


class TestSummarizeCertificate:
    def test_valid_certificate(self) -> None:
        now = ssl.cert_time_to_seconds("Mar  1 00:00:00 2024 GMT")
        assert summarize_certificate(_CERT, now=now) == {
            "issuer": "Let's Encrypt",
            "validFrom": "2024-01-01T00:00:00Z",
            "validTo": "2024-04-01T00:00:00Z",
            "daysUntilExpiration": 31,
            "valid": True,
        }

    def test_expired_certificate(self) -> None:
        now = ssl.cert_time_to_seconds("May  1 00:00:00 2024 GMT")
        summary = summarize_certificate(_CERT, now=now)
        assert summary["valid"] is False
        assert summary["daysUntilExpiration"] == -30

    def test_issuer_falls_back_to_common_name(self) -> None:
        cert = {"issuer": ((("commonName", "Internal CA"),),)}
        assert summarize_certificate(cert)["issuer"] == "Internal CA"


class TestTlsLookups:
    async def test_tls_info_skips_plain_http(self) -> None:
        assert await fetch_tls_info("http://example.com/") is None

    async def test_ssl_labs_grade(self) -> None:
        with respx.mock:
            route = respx.get(host="api.ssllabs.com", path="/api/v3/analyze").mock(
                return_value=httpx.Response(
                    200, json={"endpoints": [{"grade": None}, {"grade": "A+"}]}
                )
            )
            async with make_client() as client:
                assert await fetch_ssl_labs(client, "https://example.com/") == {"grade": "A+"}
        assert route.calls.last.request.url.params["host"] == "example.com"

    async def test_ssl_labs_failure_is_none(self) -> None:
        with respx.mock:
            respx.get(host="api.ssllabs.com", path="/api/v3/analyze").mock(
                return_value=httpx.Response(500)
            )
            async with make_client() as client:
                assert await fetch_ssl_labs(client, "https://example.com/") is None

    async def test_ssl_labs_skips_plain_http(self) -> None:
        async with make_client() as client:
            assert await fetch_ssl_labs(client, "http://example.com/") is None
