"""WebAudit CLI: entry-point for local operations.

Usage:
    python cli/main.py --help

Sub-command groups:
    db        → database setup
    audit     → run an audit in-process, inspect stored audits
    serve     → start the HTTP API under uvicorn
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from webaudit.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import typer

from cli.commands.audit import audit_app
from webaudit.config import settings
from webaudit.db import get_connection, init_db
from webaudit.logging_utils import configure_logging

app = typer.Typer(
    name="webaudit",
    help="WebAudit CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="Override WEBAUDIT_LOG_LEVEL."),
) -> None:
    configure_logging(log_level)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    settings.ensure_workspace()
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Audit commands
# ---------------------------------------------------------------------------
app.add_typer(audit_app, name="audit")


# ---------------------------------------------------------------------------
# HTTP server
# ---------------------------------------------------------------------------
@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    """Run the audit API (``POST /audit``, ``GET /audit/{id}``)."""
    import uvicorn

    uvicorn.run("webaudit.api.app:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
