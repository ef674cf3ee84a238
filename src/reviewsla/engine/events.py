"""Inbound reviewer events.

External layers never call the engine synchronously; they drop events
into the inbox and the sweep runner applies them between ticks.
"""

from __future__ import annotations

import queue
from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel


class ReviewEventKind(StrEnum):
    STARTED = "review_started"
    COMPLETED = "review_completed"


class ReviewEvent(BaseModel):
    kind: ReviewEventKind
    request_id: str
    reviewer_id: str
    received_at: Optional[datetime] = None


class EventInbox:
    """Thread-safe FIFO of pending reviewer events."""

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: queue.Queue[ReviewEvent] = queue.Queue(maxsize=maxsize)

    def put(self, event: ReviewEvent) -> None:
        self._queue.put_nowait(event)

    def drain(self, limit: int | None = None) -> list[ReviewEvent]:
        events: list[ReviewEvent] = []
        while limit is None or len(events) < limit:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return events

    def __len__(self) -> int:
        return self._queue.qsize()
