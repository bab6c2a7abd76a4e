"""WordPress fingerprinting, component staleness and exposure probes.

Plugins and themes are discovered from ``wp-content`` asset paths in the root
page and, where the site exposes them, from the REST API.  Each discovered
component is compared against the latest release on wordpress.org and looked
up in the WPScan vulnerability database (when ``WPSCAN_API_TOKEN`` is set).
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Iterable, Literal, Optional
from urllib.parse import urljoin

import httpx

from webaudit.config import settings
from webaudit.scraper.fetcher import request_with_retry
from webaudit.scraper.models import FetchedPage

logger = logging.getLogger(__name__)

ComponentKind = Literal["plugin", "theme"]

WP_API_ROOT = "https://api.wordpress.org"
WPSCAN_API_ROOT = "https://wpscan.com/api/v3"

_GENERATOR_RE = re.compile(r"WordPress\s+([0-9][0-9.]*)", re.IGNORECASE)
_DIGITS_RE = re.compile(r"\d+")

_COMPONENT_PATTERNS = {
    "plugin": (
        re.compile(r"wp-content/plugins/([a-z0-9-]+)[^\"'\s]*?ver=([0-9.]+)", re.IGNORECASE),
        re.compile(r"wp-content/plugins/([a-z0-9-]+)", re.IGNORECASE),
    ),
    "theme": (
        re.compile(r"wp-content/themes/([a-z0-9-]+)[^\"'\s]*?ver=([0-9.]+)", re.IGNORECASE),
        re.compile(r"wp-content/themes/([a-z0-9-]+)", re.IGNORECASE),
    ),
}

# (header name, header substring or "" for presence, body marker, plugin name)
_CACHING_SIGNATURES = [
    ("x-cache-enabled", "", "wp rocket", "WP Rocket"),
    ("x-litespeed-cache", "", "litespeed cache", "LiteSpeed Cache"),
    ("x-powered-by", "w3 total cache", "w3 total cache", "W3 Total Cache"),
    ("wp-super-cache", "", "wp-super-cache", "WP Super Cache"),
]


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

def _version_parts(version: str) -> list[int]:
    parts = []
    for piece in version.strip().split("."):
        match = _DIGITS_RE.match(piece)
        parts.append(int(match.group()) if match else 0)
    return parts


def compare_versions(a: str, b: str) -> int:
    """Compare dotted versions numerically; missing segments count as zero.

    Returns a negative number when *a* is older, zero when equal, positive
    when newer.
    """
    pa, pb = _version_parts(a), _version_parts(b)
    for i in range(max(len(pa), len(pb))):
        diff = (pa[i] if i < len(pa) else 0) - (pb[i] if i < len(pb) else 0)
        if diff:
            return diff
    return 0


def is_outdated(installed: Optional[str], latest: Optional[str]) -> bool:
    if not installed or not latest:
        return False
    return compare_versions(installed, latest) < 0


# ---------------------------------------------------------------------------
# Component discovery
# ---------------------------------------------------------------------------

def discover_components(html: str, kind: ComponentKind) -> dict[str, Optional[str]]:
    """Map plugin (or theme) slugs referenced in *html* to their ``ver=`` value."""
    versioned, bare = _COMPONENT_PATTERNS[kind]
    found: dict[str, Optional[str]] = {}
    for match in versioned.finditer(html):
        found[match.group(1)] = match.group(2)
    for match in bare.finditer(html):
        found.setdefault(match.group(1), None)
    return found


async def fetch_rest_components(
    client: httpx.AsyncClient, site_url: str, kind: ComponentKind
) -> dict[str, Optional[str]]:
    """Read plugins/themes from the WP REST API when it is publicly readable."""
    endpoint = urljoin(site_url, f"/wp-json/wp/v2/{kind}s")
    try:
        response = await request_with_retry(client, "GET", endpoint, timeout=settings.probe_timeout)
        response.raise_for_status()
        entries = response.json()
    except (httpx.HTTPError, ValueError):
        return {}
    if not isinstance(entries, list):
        return {}

    found: dict[str, Optional[str]] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        slug = entry.get("slug") or entry.get("stylesheet") or entry.get("name")
        if not isinstance(slug, str):
            continue
        version = entry.get("version")
        found[slug] = version if isinstance(version, str) else None
    return found


async def fetch_latest_version(
    client: httpx.AsyncClient, kind: ComponentKind, slug: str
) -> Optional[str]:
    """Latest released version of a plugin/theme on wordpress.org."""
    if kind == "plugin":
        url = f"{WP_API_ROOT}/plugins/info/1.0/{slug}.json"
        params: dict[str, str] = {}
    else:
        url = f"{WP_API_ROOT}/themes/info/1.2/"
        params = {"action": "theme_information", "request[slug]": slug}
    try:
        response = await request_with_retry(
            client, "GET", url, params=params, timeout=settings.probe_timeout
        )
        response.raise_for_status()
        version = response.json().get("version")
    except (httpx.HTTPError, ValueError, AttributeError):
        return None
    return version if isinstance(version, str) else None


# ---------------------------------------------------------------------------
# Vulnerabilities
# ---------------------------------------------------------------------------

def _severity(score: Any) -> str:
    if not isinstance(score, (int, float)):
        return "unknown"
    if score >= 9:
        return "critical"
    if score >= 7:
        return "high"
    if score >= 4:
        return "medium"
    return "low"


def _parse_vulnerabilities(slug: str, data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict) and isinstance(data.get(slug), dict):
        data = data[slug]
    raw = data.get("vulnerabilities") if isinstance(data, dict) else None
    vulns = []
    for vuln in raw or []:
        references = (vuln.get("references") or {}).get("url") or []
        vulns.append(
            {
                "severity": _severity((vuln.get("cvss") or {}).get("score")),
                "fixedIn": vuln.get("fixed_in"),
                "references": list(references),
            }
        )
    return vulns


async def fetch_vulnerabilities(
    client: httpx.AsyncClient, kind: ComponentKind, slugs: Iterable[str]
) -> dict[str, list[dict[str, Any]]]:
    """Known vulnerabilities per slug from WPScan; ``{}`` without an API token.

    Slugs with no known vulnerabilities, or whose lookup failed, are omitted.
    """
    token = settings.wpscan_api_token
    if not token:
        return {}

    async def lookup(slug: str) -> tuple[str, list[dict[str, Any]]]:
        try:
            response = await request_with_retry(
                client,
                "GET",
                f"{WPSCAN_API_ROOT}/{kind}s/{slug}",
                headers={"Authorization": f"Token token={token}"},
                timeout=settings.probe_timeout,
            )
            response.raise_for_status()
            return slug, _parse_vulnerabilities(slug, response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("WPScan lookup for %s %r failed: %s", kind, slug, exc)
            return slug, []

    results = await asyncio.gather(*(lookup(s) for s in slugs))
    return {slug: vulns for slug, vulns in results if vulns}


# ---------------------------------------------------------------------------
# Fingerprint
# ---------------------------------------------------------------------------

def detect_caching(page: FetchedPage) -> list[str]:
    """Name the caching plugins/layers whose signature appears in the response."""
    body = page.html.lower()
    found = []
    for header, header_marker, body_marker, name in _CACHING_SIGNATURES:
        value = page.headers.get(header)
        if value is not None and header_marker in value.lower():
            found.append(name)
        elif body_marker in body:
            found.append(name)
    return found


async def _core_is_up_to_date(client: httpx.AsyncClient, version: str) -> Optional[bool]:
    try:
        response = await request_with_retry(
            client,
            "GET",
            f"{WP_API_ROOT}/core/stable-check/1.0/",
            params={"version": version},
            timeout=settings.probe_timeout,
        )
        response.raise_for_status()
        status = response.json().get(version)
    except (httpx.HTTPError, ValueError, AttributeError):
        return None
    if status is None:
        return None
    return status == "latest"


async def fetch_wordpress_info(
    client: httpx.AsyncClient, site_url: str, page: FetchedPage
) -> dict[str, Any]:
    """Fingerprint WordPress from the REST index and the already-fetched page."""
    info: dict[str, Any] = {
        "isWordPress": False,
        "name": None,
        "wpVersion": None,
        "isUpToDate": None,
        "caching": detect_caching(page),
    }

    try:
        response = await request_with_retry(
            client, "GET", urljoin(site_url, "/wp-json"), timeout=settings.probe_timeout
        )
        response.raise_for_status()
        name = response.json().get("name")
        if isinstance(name, str):
            info["isWordPress"] = True
            info["name"] = name
    except (httpx.HTTPError, ValueError, AttributeError):
        pass

    generator = _GENERATOR_RE.search(page.html)
    if generator:
        info["isWordPress"] = True
        info["wpVersion"] = generator.group(1).rstrip(".")
        info["isUpToDate"] = await _core_is_up_to_date(client, info["wpVersion"])
    return info


async def audit_components(
    client: httpx.AsyncClient, site_url: str, html: str
) -> dict[str, Any]:
    """Discover plugins/themes, flag stale ones and collect their vulnerabilities."""
    plugins = discover_components(html, "plugin")
    themes = discover_components(html, "theme")
    rest_plugins, rest_themes = await asyncio.gather(
        fetch_rest_components(client, site_url, "plugin"),
        fetch_rest_components(client, site_url, "theme"),
    )
    for found, extra in ((plugins, rest_plugins), (themes, rest_themes)):
        for slug, version in extra.items():
            if version or slug not in found:
                found[slug] = version or found.get(slug)

    async def details(kind: ComponentKind, slug: str, installed: Optional[str]) -> dict[str, Any]:
        latest = await fetch_latest_version(client, kind, slug)
        return {
            "slug": slug,
            "version": installed,
            "latestVersion": latest,
            "outdated": is_outdated(installed, latest),
        }

    plugin_details, theme_details, plugin_vulns, theme_vulns = await asyncio.gather(
        asyncio.gather(*(details("plugin", s, v) for s, v in plugins.items())),
        asyncio.gather(*(details("theme", s, v) for s, v in themes.items())),
        fetch_vulnerabilities(client, "plugin", plugins),
        fetch_vulnerabilities(client, "theme", themes),
    )
    return {
        "plugins": list(plugin_details),
        "themes": list(theme_details),
        "vulnerabilities": {"plugins": plugin_vulns, "themes": theme_vulns},
    }


# ---------------------------------------------------------------------------
# Exposure probes
# ---------------------------------------------------------------------------

async def _get(client: httpx.AsyncClient, site_url: str, path: str, **kwargs: Any) -> Optional[httpx.Response]:
    try:
        return await request_with_retry(
            client, "GET", urljoin(site_url, path), timeout=settings.probe_timeout, **kwargs
        )
    except httpx.HTTPError as exc:
        logger.warning("Probe of %s on %s failed: %s", path, site_url, exc)
        return None


async def check_xml_rpc(client: httpx.AsyncClient, site_url: str) -> bool:
    """``xmlrpc.php`` answers with its "POST requests only" banner."""
    response = await _get(client, site_url, "/xmlrpc.php")
    if response is None or response.status_code not in (200, 405):
        return False
    return "xml-rpc server accepts post requests only" in response.text.lower()


async def check_user_enumeration(client: httpx.AsyncClient, site_url: str) -> bool:
    """The REST users endpoint discloses user ids to anonymous callers."""
    response = await _get(client, site_url, "/wp-json/wp/v2/users", params={"per_page": "1"})
    if response is None or response.status_code != 200:
        return False
    try:
        users = response.json()
    except ValueError:
        return False
    return isinstance(users, list) and any(isinstance(u, dict) and "id" in u for u in users)


async def check_directory_listing(client: httpx.AsyncClient, site_url: str) -> bool:
    """``/wp-content/`` renders an auto-generated index page."""
    response = await _get(client, site_url, "/wp-content/")
    if response is None or response.status_code != 200:
        return False
    return "index of" in response.text.lower()


async def check_wp_config_backup(client: httpx.AsyncClient, site_url: str) -> bool:
    """A ``wp-config.php.bak`` copy is downloadable and looks like config."""
    response = await _get(client, site_url, "/wp-config.php.bak")
    if response is None or response.status_code != 200:
        return False
    body = response.text
    return "DB_NAME" in body or "define(" in body
