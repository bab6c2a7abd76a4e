"""CRUD operations for the ``audits`` and ``page_samples`` tables."""

from __future__ import annotations

import json
import sqlite3
import uuid
from time import time
from typing import Any, Iterable, Optional

from webaudit.db.models import QUEUED, STATUS_ORDER, Audit
from webaudit.scraper.models import PageSample


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_audit(row: sqlite3.Row) -> Audit:
    return Audit(
        id=row["id"],
        url=row["url"],
        status=row["status"],
        summary=json.loads(row["summary"]) if row["summary"] else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_sample(row: sqlite3.Row) -> PageSample:
    meta = row["meta_description_present"]
    return PageSample(
        url=row["url"],
        status=row["status"],
        title=row["title"],
        heading_count=row["heading_count"],
        meta_description_present=None if meta is None else bool(meta),
        canonical_url=row["canonical_url"],
        images_without_alt_count=row["images_without_alt_count"],
        script_asset_count=row["script_asset_count"],
        style_asset_count=row["style_asset_count"],
        largest_image_bytes=row["largest_image_bytes"],
    )


# ---------------------------------------------------------------------------
# Audits
# ---------------------------------------------------------------------------

def create_audit(conn: sqlite3.Connection, url: str) -> Audit:
    """Insert a new ``queued`` audit for *url* and return it."""
    audit_id = str(uuid.uuid4())
    now = int(time())
    with conn:
        conn.execute(
            """
            INSERT INTO audits (id, url, status, summary, created_at, updated_at)
            VALUES (?, ?, ?, NULL, ?, ?)
            """,
            (audit_id, url, QUEUED, now, now),
        )
    return get_audit(conn, audit_id)  # type: ignore[return-value]


def get_audit(conn: sqlite3.Connection, audit_id: str) -> Optional[Audit]:
    """Fetch a single audit by id.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM audits WHERE id = ?", (audit_id,)).fetchone()
    return _row_to_audit(row) if row else None


def update_audit(
    conn: sqlite3.Connection,
    audit_id: str,
    status: str,
    summary: Optional[dict[str, Any]] = None,
) -> Audit:
    """Move an audit to *status*, optionally storing *summary*.

    Raises:
        ValueError: If the audit does not exist, *status* is unknown, or the
            transition would move the audit backwards (e.g. ``done`` →
            ``running``) or out of a terminal state.
    """
    if status not in STATUS_ORDER:
        raise ValueError(f"Unknown audit status: {status!r}")

    current = get_audit(conn, audit_id)
    if current is None:
        raise ValueError(f"Audit not found: {audit_id!r}")
    if current.is_terminal or STATUS_ORDER[status] < STATUS_ORDER[current.status]:
        raise ValueError(
            f"Cannot move audit {audit_id!r} from {current.status!r} to {status!r}"
        )

    summary_json = json.dumps(summary) if summary is not None else None
    with conn:
        conn.execute(
            "UPDATE audits SET status = ?, summary = ?, updated_at = ? WHERE id = ?",
            (status, summary_json, int(time()), audit_id),
        )
    return get_audit(conn, audit_id)  # type: ignore[return-value]


def list_audits(conn: sqlite3.Connection, status: Optional[str] = None) -> list[Audit]:
    """Return all audits, newest first, optionally filtered by *status*."""
    if status:
        rows = conn.execute(
            "SELECT * FROM audits WHERE status = ? ORDER BY created_at DESC",
            (status,),
        ).fetchall()
    else:
        rows = conn.execute("SELECT * FROM audits ORDER BY created_at DESC").fetchall()
    return [_row_to_audit(r) for r in rows]


# ---------------------------------------------------------------------------
# Page samples
# ---------------------------------------------------------------------------

def create_page_samples(
    conn: sqlite3.Connection,
    audit_id: str,
    samples: Iterable[PageSample],
) -> int:
    """Insert all *samples* for *audit_id* in a single transaction.

    Returns:
        The number of rows written.
    """
    rows = [
        (
            audit_id,
            s.url,
            s.status,
            s.title,
            s.heading_count,
            None if s.meta_description_present is None else int(s.meta_description_present),
            s.canonical_url,
            s.images_without_alt_count,
            s.script_asset_count,
            s.style_asset_count,
            s.largest_image_bytes,
        )
        for s in samples
    ]
    if not rows:
        return 0
    with conn:
        conn.executemany(
            """
            INSERT INTO page_samples (
                audit_id, url, status, title, heading_count,
                meta_description_present, canonical_url,
                images_without_alt_count, script_asset_count,
                style_asset_count, largest_image_bytes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def list_page_samples(conn: sqlite3.Connection, audit_id: str) -> list[PageSample]:
    """Return the page samples recorded for *audit_id* in insertion order."""
    rows = conn.execute(
        "SELECT * FROM page_samples WHERE audit_id = ? ORDER BY id",
        (audit_id,),
    ).fetchall()
    return [_row_to_sample(r) for r in rows]
