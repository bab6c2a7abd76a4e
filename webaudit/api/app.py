"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``), initialises the schema and builds
the channel registry and audit orchestrator.  On shutdown it waits for
in-flight audits to finish, then closes the connection.

Routers
-------
    /audit      submit an audit and stream its progress (SSE)
    /healthz    liveness probe
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webaudit.api.routers import audit as audit_router
from webaudit.config import settings
from webaudit.db import get_connection, init_db
from webaudit.events import ChannelRegistry
from webaudit.logging_utils import configure_logging
from webaudit.orchestrator import AuditOrchestrator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB and start the orchestrator; drain audits on shutdown."""
    settings.ensure_workspace()
    conn = get_connection()
    init_db(conn)
    registry = ChannelRegistry()
    app.state.db = conn
    app.state.registry = registry
    app.state.orchestrator = AuditOrchestrator(conn, registry)
    try:
        yield
    finally:
        await app.state.orchestrator.join()
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    configure_logging()
    app = FastAPI(
        title="WebAudit API",
        description=(
            "Submit a website for auditing and follow the checks live over "
            "Server-Sent Events: security headers, TLS, broken links and "
            "images, SEO, accessibility, WordPress exposure and PageSpeed."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(audit_router.router, prefix="/audit", tags=["audit"])

    @app.get("/healthz", tags=["health"])
    async def healthz() -> dict[str, bool]:
        return {"ok": True}

    return app


# Module-level instance used by uvicorn:
#   uvicorn webaudit.api.app:app --reload
app = create_app()
