"""TLS certificate details and the SSL Labs grade for HTTPS targets."""

from __future__ import annotations

import asyncio
import logging
import math
import ssl
import time
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from webaudit.config import settings
from webaudit.scraper.fetcher import request_with_retry

logger = logging.getLogger(__name__)

SSL_LABS_API = "https://api.ssllabs.com/api/v3/analyze"

_SECONDS_PER_DAY = 60 * 60 * 24


def _iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _issuer_name(cert: dict[str, Any]) -> Optional[str]:
    fields: dict[str, str] = {}
    for rdn in cert.get("issuer", ()):
        for key, value in rdn:
            fields[key] = value
    if not fields:
        return None
    return fields.get("organizationName") or fields.get("commonName") or ", ".join(fields.values())


def summarize_certificate(cert: dict[str, Any], now: Optional[float] = None) -> dict[str, Any]:
    """Turn an :meth:`ssl.SSLSocket.getpeercert` dict into the summary shape."""
    now = time.time() if now is None else now
    valid_from = ssl.cert_time_to_seconds(cert["notBefore"]) if cert.get("notBefore") else None
    valid_to = ssl.cert_time_to_seconds(cert["notAfter"]) if cert.get("notAfter") else None

    days_until_expiration = None
    if valid_to is not None:
        days_until_expiration = math.ceil((valid_to - now) / _SECONDS_PER_DAY)

    valid = None
    if valid_from is not None and valid_to is not None:
        valid = valid_from <= now <= valid_to

    return {
        "issuer": _issuer_name(cert),
        "validFrom": _iso(valid_from),
        "validTo": _iso(valid_to),
        "daysUntilExpiration": days_until_expiration,
        "valid": valid,
    }


async def _peer_certificate(host: str, port: int) -> Optional[dict[str, Any]]:
    context = ssl.create_default_context()
    _reader, writer = await asyncio.open_connection(host, port, ssl=context, server_hostname=host)
    try:
        return writer.get_extra_info("peercert")
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except (ssl.SSLError, OSError):
            pass


async def fetch_tls_info(url: str) -> Optional[dict[str, Any]]:
    """Handshake with the target and summarise its certificate.

    Returns ``None`` for non-HTTPS URLs and on any handshake failure,
    including an untrusted or expired certificate.
    """
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.hostname:
        return None
    try:
        cert = await asyncio.wait_for(
            _peer_certificate(parsed.hostname, parsed.port or 443),
            timeout=settings.tls_timeout,
        )
    except (OSError, ssl.SSLError, asyncio.TimeoutError) as exc:
        logger.warning("TLS handshake with %s failed: %s", parsed.hostname, exc)
        return None
    if not cert:
        return None
    return summarize_certificate(cert)


async def fetch_ssl_labs(client: httpx.AsyncClient, url: str) -> Optional[dict[str, Any]]:
    """Return ``{"grade": ...}`` from SSL Labs' cached assessment, if any."""
    parsed = urlparse(url)
    host = parsed.hostname
    if parsed.scheme != "https" or not host:
        return None
    try:
        response = await request_with_retry(
            client,
            "GET",
            SSL_LABS_API,
            params={"host": host, "fromCache": "on", "all": "done"},
            timeout=settings.probe_timeout,
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("SSL Labs lookup for %s failed: %s", host, exc)
        return None
    for endpoint in data.get("endpoints") or []:
        grade = endpoint.get("grade")
        if grade:
            return {"grade": grade}
    return None
