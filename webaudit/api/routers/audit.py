"""Audit endpoints.

Routes
------
POST /audit         Body: {"url": "..."}  ->  201 {"auditId": "..."}
GET  /audit/{id}    Progress stream (SSE); see :mod:`webaudit.api.stream`

Submitting only records the audit and schedules it; all check work happens
in the background task owned by the app's ``AuditOrchestrator``.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from webaudit.api.stream import SSE_HEADERS, audit_event_stream
from webaudit.config import settings
from webaudit.db.audits import get_audit
from webaudit.urls import InvalidUrlError, normalize_url

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class AuditRequest(BaseModel):
    url: str


class AuditCreated(BaseModel):
    auditId: str


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("", status_code=201, response_model=AuditCreated)
async def submit_audit(body: AuditRequest, request: Request) -> AuditCreated:
    """Validate the URL, create the audit and start it in the background."""
    try:
        url = normalize_url(body.url)
    except InvalidUrlError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    audit_id = request.app.state.orchestrator.start_audit(url)
    return AuditCreated(auditId=audit_id)


@router.get("/{audit_id}")
async def stream_audit(audit_id: str, request: Request) -> StreamingResponse:
    """Stream the audit's snapshot followed by its live progress events."""
    conn = request.app.state.db
    if get_audit(conn, audit_id) is None:
        raise HTTPException(status_code=404, detail=f"Audit not found: {audit_id!r}")
    return StreamingResponse(
        audit_event_stream(
            conn,
            request.app.state.registry,
            audit_id,
            settings.keepalive_interval,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
