"""ReviewSLA exception hierarchy."""

from __future__ import annotations


class ReviewSLAError(Exception):
    """Base exception for all ReviewSLA errors."""


class VersionConflictError(ReviewSLAError):
    """Optimistic-concurrency check failed; another actor changed the record."""

    def __init__(self, kind: str, record_id: str, expected_version: int) -> None:
        self.kind = kind
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            f"{kind} {record_id!r} changed since version {expected_version}"
        )


class InvalidTransitionError(ReviewSLAError):
    """Requested lifecycle transition is not allowed from the current status."""

    def __init__(self, request_id: str, current: str, target: str) -> None:
        self.request_id = request_id
        self.current = current
        self.target = target
        super().__init__(f"Request {request_id}: cannot move {current} -> {target}")


class RequestNotFoundError(ReviewSLAError):
    """No review request with the given id."""


class ReviewerNotFoundError(ReviewSLAError):
    """No reviewer profile with the given id."""


class StoreError(ReviewSLAError):
    """Review store backend operation failed."""


class CompensationLogError(ReviewSLAError):
    """Compensation idempotency log operation failed."""


class PortError(ReviewSLAError):
    """An outbound port call failed."""


class NotificationError(PortError):
    """Notification port call failed."""


class RewardError(PortError):
    """Reward/economy port call failed."""


class ReputationError(PortError):
    """Reputation port call failed."""


class ReviewerMismatchError(ReviewSLAError):
    """A reviewer acted on a request assigned to somebody else."""
