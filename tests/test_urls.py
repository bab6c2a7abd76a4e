"""Tests for submitted-URL normalisation."""

from __future__ import annotations

import pytest

from webaudit.urls import InvalidUrlError, canonical_url, normalize_url


class TestNormalizeUrl:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("example.com", "https://example.com/"),
            ("https://example.com", "https://example.com/"),
            ("https://example.com/#top", "https://example.com/"),
            ("  http://example.com/page?q=1#frag ", "http://example.com/page?q=1"),
            ("HTTPS://example.com/a", "https://example.com/a"),
            ("https://Example.com:443", "https://example.com/"),
            ("example.com:8443/x", "https://example.com:8443/x"),
        ],
    )
    def test_normalises(self, raw: str, expected: str) -> None:
        assert normalize_url(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["", "   ", "ftp://example.com/", "https://", "https://exa mple.com/", "example.com:notaport/"],
    )
    def test_rejects(self, raw: str) -> None:
        with pytest.raises(InvalidUrlError):
            normalize_url(raw)

    def test_error_is_value_error(self) -> None:
        assert issubclass(InvalidUrlError, ValueError)


class TestCanonicalUrl:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("https://example.com", "https://example.com/"),
            ("HTTPS://Example.COM/Path", "https://example.com/Path"),
            ("https://example.com:443/a", "https://example.com/a"),
            ("http://example.com:80", "http://example.com/"),
            ("http://example.com:8080", "http://example.com:8080/"),
            ("https://example.com/a?q=1#top", "https://example.com/a?q=1#top"),
            ("https://user@example.com", "https://user@example.com/"),
        ],
    )
    def test_canonical_form(self, raw: str, expected: str) -> None:
        assert canonical_url(raw) == expected

    def test_bad_port(self) -> None:
        with pytest.raises(ValueError):
            canonical_url("https://example.com:notaport/")
