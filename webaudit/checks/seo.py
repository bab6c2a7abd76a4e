"""SEO metadata extraction and ``application/ld+json`` validation."""

from __future__ import annotations

import json
import re
from typing import Any

from bs4 import BeautifulSoup

from webaudit.scraper.extractor import (
    count_headings,
    extract_canonical,
    extract_meta_description,
    extract_title,
)

REQUIRED_OPEN_GRAPH = ["og:title", "og:description", "og:image"]
REQUIRED_TWITTER = ["twitter:card", "twitter:title", "twitter:description", "twitter:image"]

_NOINDEX_RE = re.compile(r"noindex", re.IGNORECASE)
_NOFOLLOW_RE = re.compile(r"nofollow", re.IGNORECASE)


def _prefixed_meta(soup: BeautifulSoup, prefix: str, attrs: tuple[str, ...]) -> dict[str, str]:
    tags: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        for attr in attrs:
            key = meta.get(attr)
            if key and key.lower().startswith(prefix):
                content = meta.get("content")
                if content:
                    tags[key.lower()] = content
                break
    return tags


def extract_seo_tags(soup: BeautifulSoup) -> dict[str, Any]:
    """Collect the on-page SEO signals reported in the audit summary."""
    robots_meta_tag = soup.find("meta", attrs={"name": "robots"})
    robots_meta = robots_meta_tag.get("content") if robots_meta_tag else None
    open_graph = _prefixed_meta(soup, "og:", ("property", "name"))
    twitter = _prefixed_meta(soup, "twitter:", ("name",))
    h1_count = count_headings(soup, "h1")
    return {
        "title": extract_title(soup),
        "metaDescPresent": bool(extract_meta_description(soup)),
        "canonicalUrl": extract_canonical(soup),
        "robotsMeta": robots_meta or None,
        "robotsNoindex": bool(robots_meta and _NOINDEX_RE.search(robots_meta)),
        "robotsNofollow": bool(robots_meta and _NOFOLLOW_RE.search(robots_meta)),
        "openGraph": open_graph,
        "twitterCard": twitter,
        "missingOpenGraph": [t for t in REQUIRED_OPEN_GRAPH if t not in open_graph],
        "missingTwitter": [t for t in REQUIRED_TWITTER if t not in twitter],
        "h1Count": h1_count,
        "hasMultipleH1": h1_count != 1,
    }


def _is_thing(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("@type"), str) and "@context" in value


def validate_schemas(soup: BeautifulSoup) -> dict[str, Any]:
    """Parse every ld+json block and sort items into valid / invalid.

    An item is valid when it is a JSON object carrying ``@context`` and a
    string ``@type``.  ``items`` lists the ``@type`` of each valid item.
    """
    scripts = soup.find_all("script", attrs={"type": "application/ld+json"})
    items: list[str] = []
    invalid: list[dict[str, str]] = []
    for script in scripts:
        text = script.string or script.get_text()
        if not text or not text.strip():
            continue
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            invalid.append({"raw": text.strip(), "error": str(exc)})
            continue
        for item in parsed if isinstance(parsed, list) else [parsed]:
            if _is_thing(item):
                items.append(item["@type"])
            else:
                invalid.append({"raw": json.dumps(item), "error": "Missing @context or @type"})
    return {
        "structuredDataPresent": bool(scripts),
        "validCount": len(items),
        "items": items,
        "invalidSchemas": invalid,
    }
