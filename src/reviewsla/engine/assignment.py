"""Assignment service — picks the best-scoring reviewer with spare capacity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from reviewsla.core.exceptions import InvalidTransitionError
from reviewsla.core.protocols import IClock
from reviewsla.engine.directory import ReviewerDirectory, take_slot
from reviewsla.engine.outbox import Outbox
from reviewsla.engine.requests import RequestStore
from reviewsla.engine.scorer import match_score
from reviewsla.models.request import RequestStatus, ReviewRequest
from reviewsla.models.reviewer import ReviewerProfile
from reviewsla.models.sla import RecipientRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    """A committed assignment."""
    request: ReviewRequest
    reviewer: ReviewerProfile


@dataclass(frozen=True)
class NoCapacity:
    """No reviewer can take the request now. Not an error: retried next sweep."""
    request: ReviewRequest
    reason: str


def rank_candidates(candidates: list[ReviewerProfile], now: datetime) -> list[ReviewerProfile]:
    """Highest score first; ties by fastest average response, then reviewer id."""
    return sorted(
        candidates,
        key=lambda r: (-match_score(r, now), r.average_response_hours, r.reviewer_id),
    )


class AssignmentService:
    """Assigns pending requests.

    Usage:
        outcome = service.assign(request)
        if isinstance(outcome, Assignment):
            ...
    """

    def __init__(
        self,
        *,
        directory: ReviewerDirectory,
        requests: RequestStore,
        outbox: Outbox,
        clock: IClock,
    ) -> None:
        self._directory = directory
        self._requests = requests
        self._outbox = outbox
        self._clock = clock

    def candidates(self, request: ReviewRequest) -> list[ReviewerProfile]:
        exclude = request.tried_reviewers() | {request.requester_id}
        return self._directory.assignable(exclude_ids=exclude)

    def assign(self, request: ReviewRequest) -> Assignment | NoCapacity:
        """Assign ``request`` to the best candidate in one atomic commit.

        Raises InvalidTransitionError if the request is not pending and
        VersionConflictError if the request or the chosen reviewer changed
        since they were read.
        """
        if request.status != RequestStatus.PENDING:
            raise InvalidTransitionError(
                request.request_id, request.status.value, RequestStatus.ASSIGNED.value,
            )

        now = self._clock.now()
        candidates = self.candidates(request)
        if not candidates:
            logger.debug("no capacity for request %s", request.request_id)
            return NoCapacity(request=request, reason="No active reviewer with spare capacity")

        best = rank_candidates(candidates, now)[0]
        changed = RequestStore.transition(
            request, RequestStatus.ASSIGNED,
            assigned_reviewer_id=best.reviewer_id,
            assigned_at=now,
        )
        saved_requests, saved_reviewers = self._requests.commit([changed], [take_slot(best)])
        saved, reviewer = saved_requests[0], saved_reviewers[0]

        logger.info(
            "assigned request %s to %s (%d/%d)",
            saved.request_id, reviewer.reviewer_id, reviewer.current, reviewer.max_concurrent,
        )
        self._outbox.notify(
            "review_assigned", RecipientRole.REVIEWER,
            request_id=saved.request_id, reviewer_id=reviewer.reviewer_id,
        )
        return Assignment(request=saved, reviewer=reviewer)
