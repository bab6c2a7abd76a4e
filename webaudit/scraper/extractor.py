"""HTML feature extraction shared by the root-page checks and the crawler."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from webaudit.urls import canonical_url


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_html(html: str) -> BeautifulSoup:
    """Parse *html* with the stdlib-backed ``html.parser`` tree builder."""
    return BeautifulSoup(html or "", "html.parser")


def _has_rel(tag: Tag, value: str) -> bool:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return value in (r.lower() for r in rel)


# ---------------------------------------------------------------------------
# Individual features
# ---------------------------------------------------------------------------

def extract_title(soup: BeautifulSoup) -> str:
    """Return the stripped text of the first ``<title>`` tag, or ``""``."""
    title = soup.find("title")
    return title.get_text().strip() if title else ""


def extract_meta_description(soup: BeautifulSoup) -> Optional[str]:
    meta = soup.find("meta", attrs={"name": "description"})
    if meta is None:
        return None
    return meta.get("content")


def extract_canonical(soup: BeautifulSoup) -> Optional[str]:
    for link in soup.find_all("link"):
        if _has_rel(link, "canonical") and link.get("href"):
            return link["href"]
    return None


def count_headings(soup: BeautifulSoup, level: str = "h1") -> int:
    return len(soup.find_all(level))


def count_images_without_alt(soup: BeautifulSoup) -> int:
    """Count ``<img>`` elements whose ``alt`` attribute is absent or empty."""
    return sum(1 for img in soup.find_all("img") if not img.has_attr("alt") or img["alt"] == "")


def count_script_assets(soup: BeautifulSoup) -> int:
    return len(soup.find_all("script", src=True))


def count_style_assets(soup: BeautifulSoup) -> int:
    return sum(1 for link in soup.find_all("link") if _has_rel(link, "stylesheet"))


def image_sources(soup: BeautifulSoup) -> List[str]:
    """Return every non-empty ``img[src]`` value in document order."""
    return [img["src"] for img in soup.find_all("img", src=True) if img["src"]]


# ---------------------------------------------------------------------------
# Link resolution
# ---------------------------------------------------------------------------

def resolve_urls(base_url: str, refs: Iterable[str]) -> List[str]:
    """Resolve *refs* against *base_url*, keeping unique absolute http(s) URLs.

    Each URL is put in canonical form (see :func:`webaudit.urls.canonical_url`)
    before deduplication, so ``https://example.com`` and
    ``https://example.com/`` count once; first-seen order is preserved.
    Unparseable references are skipped.
    """
    seen: set[str] = set()
    urls: List[str] = []
    for ref in refs:
        if not ref:
            continue
        try:
            absolute = canonical_url(urljoin(base_url, ref.strip()))
            scheme = urlparse(absolute).scheme
        except ValueError:
            continue
        if scheme not in ("http", "https"):
            continue
        if absolute not in seen:
            seen.add(absolute)
            urls.append(absolute)
    return urls


def anchor_hrefs(soup: BeautifulSoup) -> List[str]:
    return [a["href"] for a in soup.find_all("a", href=True)]


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

def page_features(soup: BeautifulSoup) -> dict[str, Any]:
    """Return the lightweight feature set sampled for every audited page."""
    return {
        "title": extract_title(soup) or None,
        "heading_count": count_headings(soup, "h1"),
        "meta_description_present": soup.find("meta", attrs={"name": "description"}) is not None,
        "canonical_url": extract_canonical(soup),
        "images_without_alt_count": count_images_without_alt(soup),
        "script_asset_count": count_script_assets(soup),
        "style_asset_count": count_style_assets(soup),
    }
