"""Server-Sent Events adapter for one audit's progress.

Frame format
------------
Each event is a JSON object on a single ``data:`` line::

    data: {"status": "running"}                          snapshot
    data: {"step": "links", "message": "Checking links..."}
    data: {"status": "done", "url": "...", ...}          terminal
    data: {"status": "error", "message": "..."}          terminal

While no event arrives a ``: ping`` comment frame is written every
``keepalive_interval`` seconds; SSE parsers ignore it.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
from typing import Any, AsyncIterator, Optional

from webaudit.config import settings
from webaudit.db.audits import get_audit
from webaudit.db.models import Audit
from webaudit.events import ChannelRegistry

PING_FRAME = ": ping\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",   # disable nginx proxy buffering
}


def sse(payload: dict[str, Any]) -> str:
    """Format a payload dict as a single SSE ``data:`` line."""
    return f"data: {json.dumps(payload)}\n\n"


def snapshot(audit: Audit) -> dict[str, Any]:
    payload: dict[str, Any] = {"status": audit.status}
    if audit.is_terminal:
        payload["summary"] = audit.summary
    return payload


async def audit_event_stream(
    conn: sqlite3.Connection,
    registry: ChannelRegistry,
    audit_id: str,
    keepalive_interval: Optional[float] = None,
) -> AsyncIterator[str]:
    """Yield the snapshot then every live event for *audit_id*.

    The live subscription is taken before the snapshot is read, so an event
    published in between is never lost.  A terminal snapshot ends the stream
    without touching the channel.  Closing the generator (client gone)
    releases the subscription; the audit itself keeps running.
    """
    interval = settings.keepalive_interval if keepalive_interval is None else keepalive_interval
    channel = registry.get(audit_id)
    subscription = channel.subscribe() if channel is not None else None
    try:
        audit = get_audit(conn, audit_id)
        if audit is not None:
            yield sse(snapshot(audit))
            if audit.is_terminal:
                return
        if subscription is None:
            return

        while not subscription.finished:
            try:
                event = await subscription.get(timeout=interval)
            except asyncio.TimeoutError:
                yield PING_FRAME
                continue
            yield sse(event.to_frame())
    finally:
        if subscription is not None:
            subscription.close()
