"""Per-audit progress events and the in-process publish/subscribe channel.

Event shapes
------------
Each event renders to the JSON object sent in one stream frame::

    ProgressEvent  -> {"step": "crawl", "message": "Crawling additional pages..."}
    DoneEvent      -> {"status": "done", ...summary fields}
    ErrorEvent     -> {"status": "error", "message": "..."}

``DoneEvent`` and ``ErrorEvent`` are terminal: publishing one closes the
channel, so every subscriber sees it as its last event.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Union

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProgressEvent:
    step: str
    message: str

    terminal = False

    def to_frame(self) -> dict[str, Any]:
        return {"step": self.step, "message": self.message}


@dataclass(frozen=True)
class DoneEvent:
    summary: dict[str, Any] = field(default_factory=dict)

    terminal = True

    def to_frame(self) -> dict[str, Any]:
        return {**self.summary, "status": "done"}


@dataclass(frozen=True)
class ErrorEvent:
    message: str

    terminal = True

    def to_frame(self) -> dict[str, Any]:
        return {"status": "error", "message": self.message}


AuditEvent = Union[ProgressEvent, DoneEvent, ErrorEvent]


# ---------------------------------------------------------------------------
# Subscription
# ---------------------------------------------------------------------------

class Subscription:
    """One reader's view of an :class:`AuditChannel`.

    Events are buffered in an unbounded queue so a slow reader never blocks
    the publisher.  Iteration stops after the terminal event.
    """

    def __init__(self, channel: "AuditChannel") -> None:
        self._channel = channel
        self._queue: asyncio.Queue[AuditEvent] = asyncio.Queue()
        self.finished = False

    def _deliver(self, event: AuditEvent) -> None:
        self._queue.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> AuditEvent:
        """Wait for the next event.

        Raises:
            asyncio.TimeoutError: If *timeout* elapses with no event.
        """
        if timeout is None:
            event = await self._queue.get()
        else:
            event = await asyncio.wait_for(self._queue.get(), timeout)
        if event.terminal:
            self.finished = True
        return event

    def close(self) -> None:
        """Detach from the channel.  Safe to call more than once."""
        self._channel._unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[AuditEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[AuditEvent]:
        while not self.finished:
            yield await self.get()


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------

class AuditChannel:
    """Fan-out of one audit's events to every current subscriber, in order."""

    def __init__(self, audit_id: str) -> None:
        self.audit_id = audit_id
        self._subscribers: list[Subscription] = []
        self.closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: AuditEvent) -> None:
        """Deliver *event* to all subscribers; terminal events close the channel."""
        if self.closed:
            logger.warning("Audit %s: dropping %s published after terminal event", self.audit_id, type(event).__name__)
            return
        for subscription in list(self._subscribers):
            subscription._deliver(event)
        if event.terminal:
            self.closed = True
            self._subscribers.clear()

    def subscribe(self) -> Subscription:
        """Attach a new reader.  A subscription to a closed channel is already finished."""
        subscription = Subscription(self)
        if self.closed:
            subscription.finished = True
        else:
            self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ChannelRegistry:
    """Live channels keyed by audit id.

    An entry exists only while its audit is running.  One registry is owned
    by each :class:`~webaudit.orchestrator.AuditOrchestrator` and shared with
    the streaming endpoint.
    """

    def __init__(self) -> None:
        self._channels: dict[str, AuditChannel] = {}
        self._lock = threading.Lock()

    def create(self, audit_id: str) -> AuditChannel:
        """Register a fresh channel for *audit_id*.

        Raises:
            ValueError: If a channel is already registered for *audit_id*.
        """
        with self._lock:
            if audit_id in self._channels:
                raise ValueError(f"Channel already registered for audit {audit_id!r}")
            channel = AuditChannel(audit_id)
            self._channels[audit_id] = channel
            return channel

    def get(self, audit_id: str) -> Optional[AuditChannel]:
        with self._lock:
            return self._channels.get(audit_id)

    def remove(self, audit_id: str) -> None:
        """Drop the channel for *audit_id*; a no-op if none is registered."""
        with self._lock:
            self._channels.pop(audit_id, None)

    def __contains__(self, audit_id: object) -> bool:
        with self._lock:
            return audit_id in self._channels

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)
