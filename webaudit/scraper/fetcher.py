"""Async HTTP helpers shared by the orchestrator, crawler, validator and checks.

Every remote call goes through :func:`request_with_retry`, which applies a
per-request timeout and retries transport-level failures (timeouts, DNS and
connection errors) ``settings.request_retries`` times.  HTTP error statuses are
*not* retried; callers decide what a 4xx/5xx means for them.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from webaudit.config import settings
from webaudit.scraper.models import FetchedPage

logger = logging.getLogger(__name__)


def default_headers() -> dict[str, str]:
    return {"User-Agent": settings.user_agent}


def make_client(**kwargs: Any) -> httpx.AsyncClient:
    """Return an ``httpx.AsyncClient`` configured for auditing.

    Redirects are followed and the default timeout is the root-page timeout;
    individual calls override it through :func:`request_with_retry`.
    """
    options: dict[str, Any] = {
        "headers": default_headers(),
        "timeout": settings.request_timeout,
        "follow_redirects": True,
    }
    options.update(kwargs)
    return httpx.AsyncClient(**options)


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request, retrying transport errors up to *retries* times.

    Raises:
        httpx.TransportError: When every attempt failed at the transport level.
    """
    attempts = 1 + (settings.request_retries if retries is None else retries)
    last_exc: Optional[httpx.TransportError] = None
    for attempt in range(1, attempts + 1):
        try:
            return await client.request(
                method,
                url,
                timeout=timeout if timeout is not None else settings.request_timeout,
                **kwargs,
            )
        except httpx.TransportError as exc:
            last_exc = exc
            if attempt < attempts:
                logger.debug("%s %s failed (%s); retrying", method, url, exc)
    assert last_exc is not None
    raise last_exc


async def fetch_page(
    client: httpx.AsyncClient,
    url: str,
    timeout: Optional[float] = None,
) -> FetchedPage:
    """GET *url* and return a :class:`FetchedPage`.

    Raises:
        httpx.HTTPStatusError: If the server returns a 4xx/5xx status code.
        httpx.TransportError: If the page could not be reached after retrying.
    """
    response = await request_with_retry(client, "GET", url, timeout=timeout)
    response.raise_for_status()
    return FetchedPage.from_response(url, response)
