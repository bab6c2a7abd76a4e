"""Rule-based accessibility scan over the parsed root page.

Each rule yields at most one violation with an axe-style ``id`` and a short
description; ``scan`` returns them in rule order.
"""

from __future__ import annotations

from typing import Callable, Optional

from bs4 import BeautifulSoup

from webaudit.scraper.extractor import count_images_without_alt

VIOLATION_LIMIT = 10

_UNLABELLED_INPUT_TYPES = {"hidden", "submit", "button", "image", "reset"}


def _image_alt(soup: BeautifulSoup) -> Optional[str]:
    missing = count_images_without_alt(soup)
    if missing:
        return f"Images must have alternate text ({missing} without alt)"
    return None


def _html_has_lang(soup: BeautifulSoup) -> Optional[str]:
    html = soup.find("html")
    if html is not None and not html.get("lang"):
        return "<html> element must have a lang attribute"
    return None


def _document_title(soup: BeautifulSoup) -> Optional[str]:
    title = soup.find("title")
    if title is None or not title.get_text(strip=True):
        return "Documents must have <title> element to aid in navigation"
    return None


def _label(soup: BeautifulSoup) -> Optional[str]:
    unlabelled = 0
    for field in soup.find_all(["input", "select", "textarea"]):
        if field.name == "input" and (field.get("type") or "text").lower() in _UNLABELLED_INPUT_TYPES:
            continue
        field_id = field.get("id")
        if field_id and soup.find("label", attrs={"for": field_id}):
            continue
        if field.get("aria-label") or field.get("aria-labelledby") or field.find_parent("label"):
            continue
        unlabelled += 1
    if unlabelled:
        return f"Form elements must have labels ({unlabelled} unlabelled)"
    return None


def _named(tag) -> bool:
    if tag.get_text(strip=True) or tag.get("aria-label") or tag.get("title"):
        return True
    return any(img.get("alt") for img in tag.find_all("img"))


def _button_name(soup: BeautifulSoup) -> Optional[str]:
    unnamed = [b for b in soup.find_all("button") if not _named(b)]
    if unnamed:
        return f"Buttons must have discernible text ({len(unnamed)} without)"
    return None


def _link_name(soup: BeautifulSoup) -> Optional[str]:
    unnamed = [a for a in soup.find_all("a", href=True) if not _named(a)]
    if unnamed:
        return f"Links must have discernible text ({len(unnamed)} without)"
    return None


def _tabindex(soup: BeautifulSoup) -> Optional[str]:
    positive = 0
    for tag in soup.find_all(attrs={"tabindex": True}):
        try:
            if int(tag["tabindex"]) > 0:
                positive += 1
        except (TypeError, ValueError):
            continue
    if positive:
        return "Elements should not have tabindex greater than zero"
    return None


RULES: list[tuple[str, Callable[[BeautifulSoup], Optional[str]]]] = [
    ("image-alt", _image_alt),
    ("html-has-lang", _html_has_lang),
    ("document-title", _document_title),
    ("label", _label),
    ("button-name", _button_name),
    ("link-name", _link_name),
    ("tabindex", _tabindex),
]


def scan(soup: BeautifulSoup) -> list[str]:
    """Run every rule and return up to ``VIOLATION_LIMIT`` ``"id: description"`` strings."""
    violations = []
    for rule_id, rule in RULES:
        description = rule(soup)
        if description:
            violations.append(f"{rule_id}: {description}")
    return violations[:VIOLATION_LIMIT]
