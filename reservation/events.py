"""Per-session event stream for watching wizard sessions live.

Each WizardSession can have an EventBroadcaster attached. Commands emit
events (step transitions, hour changes, slot loads, payment outcomes) which
are appended to a bounded history and pushed to every subscriber's
asyncio.Queue for delivery over the admin WebSocket.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TypedDict

log = logging.getLogger("reservation.events")

HISTORY_LIMIT = 500
QUEUE_SIZE = 200


class WizardEvent(TypedDict):
    type: str          # transition | service | hours | date | slots | slot | details | payment | persisted | email | error
    timestamp: float
    session_id: str
    step: int
    data: dict


class EventBroadcaster:
    """Fan-out of one session's events to any number of queue subscribers."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._subscribers: list[asyncio.Queue[WizardEvent]] = []
        self._history: deque[WizardEvent] = deque(maxlen=HISTORY_LIMIT)

    def subscribe(self) -> asyncio.Queue[WizardEvent]:
        q: asyncio.Queue[WizardEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._subscribers.append(q)
        log.info("Subscriber added for session %s (total: %d)",
                 self._session_id, len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[WizardEvent]) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)
        log.info("Subscriber removed for session %s (total: %d)",
                 self._session_id, len(self._subscribers))

    def emit(self, event_type: str, step: int, data: dict) -> WizardEvent:
        event: WizardEvent = {
            "type": event_type,
            "timestamp": time.time(),
            "session_id": self._session_id,
            "step": step,
            "data": data,
        }
        self._history.append(event)

        for q in self._subscribers:
            if q.full():
                # Slow consumer: drop its oldest event
                q.get_nowait()
            q.put_nowait(event)
        return event

    @property
    def history(self) -> list[WizardEvent]:
        return list(self._history)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


# ── Registry ─────────────────────────────────────────────────────

_broadcasters: dict[str, EventBroadcaster] = {}


def get_broadcaster(session_id: str) -> EventBroadcaster:
    """Get or create the broadcaster for a session."""
    if session_id not in _broadcasters:
        _broadcasters[session_id] = EventBroadcaster(session_id)
    return _broadcasters[session_id]


def remove_broadcaster(session_id: str) -> None:
    if _broadcasters.pop(session_id, None) is not None:
        log.info("Broadcaster removed for session %s", session_id)
