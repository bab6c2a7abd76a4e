"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.  Page samples reuse
:class:`~webaudit.scraper.models.PageSample`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

QUEUED = "queued"
RUNNING = "running"
DONE = "done"
ERROR = "error"

TERMINAL_STATUSES = frozenset({DONE, ERROR})

# Position of each status in the lifecycle; updates may only move forward.
STATUS_ORDER = {QUEUED: 0, RUNNING: 1, DONE: 2, ERROR: 2}


@dataclass
class Audit:
    id: str
    url: str
    status: str
    summary: Optional[dict[str, Any]]
    created_at: int
    updated_at: int

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def summary_json(self) -> Optional[str]:
        """Serialise the summary dict to a JSON string for storage."""
        if self.summary is None:
            return None
        return json.dumps(self.summary)
