"""Protocol interfaces for all ReviewSLA abstractions.

All inter-layer communication uses these Protocols: structural typing,
no inheritance required, easy to test with isinstance(). The engine only
ever calls outward through them; nothing behind a port calls back in.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from reviewsla.core.types import JsonDict
from reviewsla.models.request import CompensationRecord, ReviewRequest
from reviewsla.models.reviewer import ReviewerProfile


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

@runtime_checkable
class IClock(Protocol):
    """Source of the current (tz-aware, UTC) time."""

    def now(self) -> datetime: ...


# ---------------------------------------------------------------------------
# Persistence: Review Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IReviewStore(Protocol):
    """Versioned requests and reviewers with an atomic multi-record commit.

    ``commit`` writes every record at ``version + 1`` only if each stored
    version still equals the record's ``version`` (absent for version 0).
    Any mismatch raises VersionConflictError and nothing is written.
    """

    def get_request(self, request_id: str) -> Optional[ReviewRequest]: ...

    def list_open_requests(self) -> list[ReviewRequest]: ...

    def get_reviewer(self, reviewer_id: str) -> Optional[ReviewerProfile]: ...

    def list_reviewers(self) -> list[ReviewerProfile]: ...

    def commit(
        self,
        requests: list[ReviewRequest] | None = None,
        reviewers: list[ReviewerProfile] | None = None,
    ) -> tuple[list[ReviewRequest], list[ReviewerProfile]]: ...


# ---------------------------------------------------------------------------
# Persistence: Compensation Log
# ---------------------------------------------------------------------------

@runtime_checkable
class ICompensationLog(Protocol):
    """Append-only idempotency log keyed by (request_id, threshold_hours)."""

    def insert_if_absent(self, record: CompensationRecord) -> bool: ...

    def get(self, request_id: str, threshold_hours: int) -> Optional[CompensationRecord]: ...

    def list_for_request(self, request_id: str) -> list[CompensationRecord]: ...


# ---------------------------------------------------------------------------
# Outbound ports
# ---------------------------------------------------------------------------

@runtime_checkable
class IRewardPort(Protocol):
    """Economy service. Must tolerate repeated calls with the same key."""

    def grant_compensation(
        self, user_id: str, kind: str, amount: int, idempotency_key: str
    ) -> None: ...


@runtime_checkable
class INotificationPort(Protocol):
    """Fire-and-forget notification delivery."""

    def notify(self, template_id: str, recipient_role: str, payload: JsonDict) -> None: ...


@runtime_checkable
class IReputationPort(Protocol):
    """Reputation service owning reviewer reputation formulas."""

    def penalize_reviewer(self, reviewer_id: str, reason: str) -> None: ...

    def reward_reviewer(self, reviewer_id: str, reason: str) -> None: ...


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

@runtime_checkable
class IDispatcher(Protocol):
    """Hands port calls off without waiting for them."""

    def submit(self, description: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None: ...

    def shutdown(self) -> None: ...
