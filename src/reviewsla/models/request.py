"""Review request lifecycle and compensation records."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field

from reviewsla.models.sla import COMPENSATION_TIERS, ServiceLevelBand


class RequestStatus(StrEnum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_REVIEW = "in_review"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"


OPEN_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.ASSIGNED, RequestStatus.IN_REVIEW})
HELD_STATUSES = frozenset({RequestStatus.ASSIGNED, RequestStatus.IN_REVIEW})
TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.TIMED_OUT})

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.ASSIGNED}),
    RequestStatus.ASSIGNED: frozenset(
        {RequestStatus.ASSIGNED, RequestStatus.IN_REVIEW, RequestStatus.COMPLETED, RequestStatus.TIMED_OUT}
    ),
    RequestStatus.IN_REVIEW: frozenset(
        {RequestStatus.ASSIGNED, RequestStatus.COMPLETED, RequestStatus.TIMED_OUT}
    ),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.TIMED_OUT: frozenset(),
}


class ReviewRequest(BaseModel):
    """A time-bound human review task."""

    request_id: str
    requester_id: str
    subject_id: str = ""

    # --- Assignment ---
    status: RequestStatus = RequestStatus.PENDING
    assigned_reviewer_id: Optional[str] = None
    assigned_at: Optional[datetime] = None
    backups: list[str] = Field(default_factory=list)  # previously-tried reviewers, oldest first

    # --- SLA tracking ---
    current_band: ServiceLevelBand = ServiceLevelBand.OPTIMAL
    escalation_level: int = 0
    redistributed: bool = False
    reminders_sent: list[int] = Field(default_factory=list)
    compensated_thresholds: list[int] = Field(default_factory=list)
    delay_notified: bool = False

    # --- Timestamps ---
    created_at: datetime
    completed_at: Optional[datetime] = None
    response_hours: Optional[float] = None

    version: int = 0

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def owes_final_compensation(self) -> bool:
        return (
            self.status == RequestStatus.TIMED_OUT
            and len(self.compensated_thresholds) < len(COMPENSATION_TIERS)
        )

    @property
    def needs_sweep(self) -> bool:
        """Open, or timed out with final compensation still unrecorded."""
        return self.is_open or self.owes_final_compensation

    def elapsed_hours(self, now: datetime) -> float:
        return (now - self.created_at).total_seconds() / 3600.0

    def held_hours(self, now: datetime) -> float:
        """Hours the current reviewer has held the request."""
        if self.assigned_at is None:
            return 0.0
        return (now - self.assigned_at).total_seconds() / 3600.0

    def tried_reviewers(self) -> set[str]:
        tried = set(self.backups)
        if self.assigned_reviewer_id:
            tried.add(self.assigned_reviewer_id)
        return tried


class CompensationRecord(BaseModel):
    """One row of the append-only compensation log.

    ``(request_id, threshold_hours)`` is unique across the log.
    """

    request_id: str
    threshold_hours: int
    user_id: str
    kind: str
    amount: int
    manual: bool = False
    granted_at: datetime
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def idempotency_key(self) -> str:
        return compensation_key(self.request_id, self.threshold_hours)


def compensation_key(request_id: str, threshold_hours: int) -> str:
    return f"{request_id}:{threshold_hours}h"
