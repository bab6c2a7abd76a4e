"""Audit orchestration: one supervised background task per submitted URL.

Lifecycle of an audit::

    start_audit(url)
        -> record created (queued), channel registered, task scheduled
    _process
        -> running
        -> progress "fetch", root page fetched (fatal on failure)
        -> pure checks in a worker thread, network checks, crawl and
           link/image validation all run concurrently
        -> merged summary persisted (done) or {"message"} persisted (error,
           also when the task is cancelled)
        -> terminal event published, channel removed

Every check is guarded at its own call site.  A failing check logs a
warning and contributes its neutral default; only the root fetch or an
error while merging/persisting ends the audit in ``error``.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from webaudit.checks import site, wordpress
from webaudit.checks.page import analyze_page
from webaudit.checks.tls import fetch_ssl_labs, fetch_tls_info
from webaudit.config import settings
from webaudit.db import audits
from webaudit.db.models import DONE, ERROR, RUNNING
from webaudit.events import AuditChannel, ChannelRegistry, DoneEvent, ErrorEvent, ProgressEvent
from webaudit.scraper.crawler import crawl
from webaudit.scraper.fetcher import fetch_page, make_client
from webaudit.scraper.models import LinkCheckResult, PageSample
from webaudit.scraper.links import check_broken_images, check_broken_links
from webaudit.urls import normalize_url

logger = logging.getLogger(__name__)

T = TypeVar("T")

ClientFactory = Callable[[], httpx.AsyncClient]

MIXED_CONTENT_SAMPLE = 10

_EMPTY_COMPONENTS: dict[str, Any] = {
    "plugins": [],
    "themes": [],
    "vulnerabilities": {"plugins": {}, "themes": {}},
}

_EMPTY_WORDPRESS: dict[str, Any] = {
    "isWordPress": False,
    "name": None,
    "wpVersion": None,
    "isUpToDate": None,
    "caching": [],
}

_EMPTY_PAGESPEED: dict[str, Any] = {
    "performance": None,
    "accessibility": None,
    "bestPractices": None,
    "seo": None,
    "lcp": None,
    "fid": None,
    "inp": None,
    "cls": None,
}


async def _guarded(name: str, url: str, awaitable: Awaitable[T], default: T) -> T:
    """Await *awaitable*; on any exception log a warning and return *default*."""
    try:
        return await awaitable
    except Exception as exc:  # noqa: BLE001
        logger.warning("Check %r failed for %s: %s", name, url, exc)
        return default


def merge_summary(
    url: str,
    page_results: dict[str, Any],
    results: dict[str, Any],
    samples: list[PageSample],
) -> dict[str, Any]:
    """Combine all check outputs into the persisted summary.

    WordPress fingerprint and PageSpeed fields sit at the top level next to
    the other checks.  Every ``*Count`` field is computed from the full
    list it counts; ``mixedContent`` itself keeps only the first
    ``MIXED_CONTENT_SAMPLE`` URLs.
    """
    links: LinkCheckResult = results["links"]
    images: LinkCheckResult = results["images"]
    components = results["components"]

    summary: dict[str, Any] = {"url": url, "usesHttps": url.startswith("https://")}
    summary.update(page_results)
    summary.update(
        {
            "ssl": results["tls"],
            "sslLabs": results["ssl_labs"],
            "robotsTxtPresent": results["robots"],
            "sitemapPresent": results["sitemap"],
            "safeBrowsingThreats": results["safe_browsing"],
            **_EMPTY_WORDPRESS,
            **results["wordpress"],
            "plugins": components["plugins"],
            "themes": components["themes"],
            "vulnerabilities": components["vulnerabilities"],
            "xmlRpcEnabled": results["xml_rpc"],
            "userEnumerationEnabled": results["user_enumeration"],
            "directoryListing": results["directory_listing"],
            "wpConfigBakExposed": results["wp_config_backup"],
            **_EMPTY_PAGESPEED,
            **results["pagespeed"],
            "totalLinks": links.total,
            "brokenLinks": list(links.broken),
            "totalImages": images.total,
            "brokenImages": list(images.broken),
            "pageSamples": [sample.to_summary() for sample in samples],
        }
    )
    mixed_content = summary.get("mixedContent", [])
    summary["brokenLinkCount"] = len(summary["brokenLinks"])
    summary["brokenImageCount"] = len(summary["brokenImages"])
    summary["mixedContentCount"] = len(mixed_content)
    summary["mixedContent"] = mixed_content[:MIXED_CONTENT_SAMPLE]
    summary["accessibilityViolationCount"] = len(summary["accessibilityViolations"])
    return summary


class AuditOrchestrator:
    """Start audits and drive each one to a terminal state.

    Args:
        conn: Open SQLite connection, already initialised.
        registry: Channel registry shared with the streaming endpoint.
        client_factory: Builds the ``httpx.AsyncClient`` used by one audit.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        registry: Optional[ChannelRegistry] = None,
        client_factory: ClientFactory = make_client,
    ) -> None:
        self.conn = conn
        self.registry = registry if registry is not None else ChannelRegistry()
        self._client_factory = client_factory
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_audit(self, url: str) -> str:
        """Create an audit for *url* and schedule it; return the audit id.

        Must be called from within a running event loop.

        Raises:
            InvalidUrlError: If *url* cannot be normalized.
        """
        target = normalize_url(url)
        audit = audits.create_audit(self.conn, target)
        channel = self.registry.create(audit.id)
        task = asyncio.create_task(self._process(audit.id, target, channel))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Audit %s queued for %s", audit.id, target)
        return audit.id

    async def join(self) -> None:
        """Wait for every in-flight audit to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def _process(self, audit_id: str, url: str, channel: AuditChannel) -> None:
        try:
            audits.update_audit(self.conn, audit_id, RUNNING)
            logger.info("Audit %s running", audit_id)
            summary, samples = await self._run_checks(url, channel)
            if samples:
                audits.create_page_samples(self.conn, audit_id, samples)
            audits.update_audit(self.conn, audit_id, DONE, summary)
            logger.info("Audit %s done", audit_id)
            channel.publish(DoneEvent(summary))
        except asyncio.CancelledError:
            logger.warning("Audit %s cancelled", audit_id)
            self._fail(audit_id, channel, "Audit cancelled")
            raise
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or type(exc).__name__
            logger.exception("Audit %s failed: %s", audit_id, message)
            self._fail(audit_id, channel, message)
        finally:
            self.registry.remove(audit_id)

    def _fail(self, audit_id: str, channel: AuditChannel, message: str) -> None:
        """Persist the error state (best effort) and publish the error event."""
        try:
            audits.update_audit(self.conn, audit_id, ERROR, {"message": message})
        except Exception:  # noqa: BLE001
            logger.exception("Audit %s: could not persist error state", audit_id)
        channel.publish(ErrorEvent(message))

    async def _run_checks(
        self, url: str, channel: AuditChannel
    ) -> tuple[dict[str, Any], list[PageSample]]:
        async with self._client_factory() as client:
            channel.publish(ProgressEvent("fetch", f"Fetching {url}..."))
            page = await fetch_page(client, url, timeout=settings.request_timeout)
            html = page.html

            def start(name: str, awaitable: Awaitable[Any], default: Any) -> asyncio.Task[Any]:
                return asyncio.create_task(_guarded(name, url, awaitable, default))

            tasks: dict[str, asyncio.Task[Any]] = {}
            tasks["page"] = asyncio.create_task(asyncio.to_thread(analyze_page, url, page))
            tasks["tls"] = start("tls", fetch_tls_info(url), None)
            tasks["ssl_labs"] = start("ssl-labs", fetch_ssl_labs(client, url), None)
            tasks["robots"] = start("robots", site.robots_txt_exists(client, url), False)
            tasks["sitemap"] = start("sitemap", site.sitemap_exists(client, url), False)

            channel.publish(ProgressEvent("crawl", "Crawling additional pages..."))
            tasks["crawl"] = start("crawl", crawl(client, url, html), [])

            channel.publish(ProgressEvent("links", "Checking links..."))
            tasks["links"] = start(
                "links", check_broken_links(client, url, html), LinkCheckResult(total=0)
            )

            channel.publish(ProgressEvent("images", "Checking images..."))
            tasks["images"] = start(
                "images", check_broken_images(client, url, html), LinkCheckResult(total=0)
            )

            channel.publish(ProgressEvent("safe-browsing", "Checking Safe Browsing..."))
            tasks["safe_browsing"] = start(
                "safe-browsing", site.check_safe_browsing(client, url), []
            )

            channel.publish(ProgressEvent("wordpress", "Inspecting WordPress..."))
            tasks["wordpress"] = start(
                "wordpress",
                wordpress.fetch_wordpress_info(client, url, page),
                dict(_EMPTY_WORDPRESS),
            )
            tasks["components"] = start(
                "components",
                wordpress.audit_components(client, url, html),
                dict(_EMPTY_COMPONENTS),
            )
            tasks["xml_rpc"] = start("xml-rpc", wordpress.check_xml_rpc(client, url), False)
            tasks["user_enumeration"] = start(
                "user-enumeration", wordpress.check_user_enumeration(client, url), False
            )
            tasks["directory_listing"] = start(
                "directory-listing", wordpress.check_directory_listing(client, url), False
            )
            tasks["wp_config_backup"] = start(
                "wp-config-backup", wordpress.check_wp_config_backup(client, url), False
            )

            channel.publish(ProgressEvent("pagespeed", "Fetching PageSpeed scores..."))
            tasks["pagespeed"] = start(
                "pagespeed", site.fetch_pagespeed_scores(client, url), dict(_EMPTY_PAGESPEED)
            )

            try:
                values = await asyncio.gather(*tasks.values())
            finally:
                pending = [task for task in tasks.values() if not task.done()]
                for task in pending:
                    task.cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)

        results = dict(zip(tasks.keys(), values))
        page_results = results.pop("page")
        samples: list[PageSample] = results["crawl"]
        return merge_summary(url, page_results, results, samples), samples
