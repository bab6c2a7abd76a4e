"""Audit commands: run an audit in-process, inspect stored results."""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer

from webaudit.api.stream import snapshot
from webaudit.db import get_connection, init_db
from webaudit.db.audits import get_audit, list_audits, list_page_samples
from webaudit.events import ChannelRegistry
from webaudit.orchestrator import AuditOrchestrator
from webaudit.urls import InvalidUrlError, normalize_url

audit_app = typer.Typer(help="Run and inspect website audits.", no_args_is_help=True)


async def _run_audit(conn, url: str) -> str:
    """Start one audit, echo every frame as JSON and return the final status."""
    registry = ChannelRegistry()
    orchestrator = AuditOrchestrator(conn, registry)
    audit_id = orchestrator.start_audit(url)
    subscription = registry.get(audit_id).subscribe()
    typer.echo(f"[audit run] {audit_id}  {url}")

    status = "error"
    try:
        async for event in subscription:
            frame = event.to_frame()
            typer.echo(json.dumps(frame))
            if event.terminal:
                status = frame["status"]
    finally:
        subscription.close()
        await orchestrator.join()
    return status


@audit_app.command("run")
def audit_run(
    url: str = typer.Argument(..., help="Website URL to audit."),
) -> None:
    """Audit URL now, printing each progress frame as it happens."""
    try:
        target = normalize_url(url)
    except InvalidUrlError as exc:
        typer.echo(f"[audit run] {exc}", err=True)
        raise typer.Exit(2)

    conn = get_connection()
    init_db(conn)
    try:
        status = asyncio.run(_run_audit(conn, target))
    finally:
        conn.close()
    if status != "done":
        raise typer.Exit(1)


@audit_app.command("show")
def audit_show(
    audit_id: str = typer.Argument(..., help="Audit UUID."),
    samples: bool = typer.Option(False, "--samples", help="Include crawled page samples."),
) -> None:
    """Print the stored status and summary of an audit as JSON."""
    conn = get_connection()
    init_db(conn)
    try:
        audit = get_audit(conn, audit_id)
        if audit is None:
            typer.echo(f"[audit show] Audit not found: {audit_id!r}", err=True)
            raise typer.Exit(1)
        payload = {"id": audit.id, "url": audit.url, **snapshot(audit)}
        if samples:
            payload["pageSamples"] = [s.to_summary() for s in list_page_samples(conn, audit.id)]
    finally:
        conn.close()
    typer.echo(json.dumps(payload, indent=2))


@audit_app.command("list")
def audit_list(
    status: Optional[str] = typer.Option(None, "--status", help="Filter: queued | running | done | error."),
) -> None:
    """List stored audits, newest first."""
    conn = get_connection()
    init_db(conn)
    try:
        rows = list_audits(conn, status=status)
    finally:
        conn.close()
    if not rows:
        typer.echo("No audits found.")
        return
    for a in rows:
        typer.echo(f"  {a.id}  [{a.status}]  {a.url}")
