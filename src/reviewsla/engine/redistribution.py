"""Redistribution engine — moves a stalled request to a fresh reviewer.

Termination is guaranteed: every hop raises ``escalation_level`` by one
and appends the previous reviewer to ``backups``; once the level reaches
``max_hops``, or nobody untried is left, the request times out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from reviewsla.core.exceptions import InvalidTransitionError
from reviewsla.core.protocols import IClock
from reviewsla.engine.directory import (
    ReviewerDirectory,
    apply_timeout_penalty,
    release_slot,
    take_slot,
)
from reviewsla.engine.outbox import Outbox
from reviewsla.engine.requests import RequestStore
from reviewsla.models.request import HELD_STATUSES, RequestStatus, ReviewRequest
from reviewsla.models.reviewer import ReviewerProfile
from reviewsla.models.sla import RecipientRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reassignment:
    """A committed hop to a new reviewer."""
    request: ReviewRequest
    reviewer: ReviewerProfile
    previous_reviewer_id: str


@dataclass(frozen=True)
class Exhausted:
    """No further hop is possible; the request is now ``timed_out``."""
    request: ReviewRequest
    reason: str


class RedistributionEngine:
    def __init__(
        self,
        *,
        directory: ReviewerDirectory,
        requests: RequestStore,
        outbox: Outbox,
        clock: IClock,
        max_hops: int,
    ) -> None:
        if max_hops < 0:
            raise ValueError(f"max_hops must be >= 0, got {max_hops}")
        self._directory = directory
        self._requests = requests
        self._outbox = outbox
        self._clock = clock
        self._max_hops = max_hops

    @property
    def max_hops(self) -> int:
        return self._max_hops

    def candidates(self, request: ReviewRequest) -> list[ReviewerProfile]:
        """Assignable reviewers who never held this request."""
        exclude = request.tried_reviewers() | {request.requester_id}
        pool = self._directory.assignable(exclude_ids=exclude)
        return sorted(pool, key=lambda r: (-r.sla_score, r.average_response_hours, r.reviewer_id))

    def redistribute(self, request: ReviewRequest) -> Reassignment | Exhausted:
        """Reassign a held request, or time it out when hops are exhausted.

        Raises InvalidTransitionError if the request is not assigned or in
        review, and VersionConflictError if any touched record changed.
        """
        if request.status not in HELD_STATUSES or not request.assigned_reviewer_id:
            raise InvalidTransitionError(
                request.request_id, request.status.value, RequestStatus.ASSIGNED.value,
            )

        previous_id = request.assigned_reviewer_id
        previous = self._directory.find(previous_id)

        if request.escalation_level >= self._max_hops:
            return self._exhaust(request, previous, f"hop bound {self._max_hops} reached")

        candidates = self.candidates(request)
        if not candidates:
            return self._exhaust(request, previous, "no untried reviewer available")

        chosen = candidates[0]
        now = self._clock.now()
        changed = RequestStore.transition(
            request, RequestStatus.ASSIGNED,
            assigned_reviewer_id=chosen.reviewer_id,
            assigned_at=now,
            backups=[*request.backups, previous_id],
            escalation_level=request.escalation_level + 1,
            redistributed=True,
            reminders_sent=[],
        )
        reviewers = [take_slot(chosen)]
        if previous is not None:
            reviewers.append(apply_timeout_penalty(release_slot(previous)))

        saved_requests, saved_reviewers = self._requests.commit([changed], reviewers)
        saved, new_reviewer = saved_requests[0], saved_reviewers[0]

        logger.warning(
            "redistributed request %s: %s -> %s (level %d/%d)",
            saved.request_id, previous_id, new_reviewer.reviewer_id,
            saved.escalation_level, self._max_hops,
        )
        self._outbox.penalize(previous_id, "sla_timeout_redistribution")
        self._outbox.notify(
            "new_reviewer_assigned", RecipientRole.REQUESTER,
            request_id=saved.request_id, user_id=saved.requester_id,
        )
        self._outbox.notify(
            "review_reassigned", RecipientRole.REVIEWER,
            request_id=saved.request_id, reviewer_id=previous_id,
        )
        self._outbox.notify(
            "review_assigned", RecipientRole.REVIEWER,
            request_id=saved.request_id, reviewer_id=new_reviewer.reviewer_id,
            escalation_level=saved.escalation_level,
        )
        return Reassignment(request=saved, reviewer=new_reviewer, previous_reviewer_id=previous_id)

    def _exhaust(
        self, request: ReviewRequest, previous: Optional[ReviewerProfile], reason: str,
    ) -> Exhausted:
        changed = RequestStore.transition(request, RequestStatus.TIMED_OUT)
        reviewers = [apply_timeout_penalty(release_slot(previous))] if previous is not None else []
        saved_requests, _ = self._requests.commit([changed], reviewers)
        saved = saved_requests[0]

        logger.warning("request %s timed out: %s", saved.request_id, reason)
        if previous is not None:
            self._outbox.penalize(previous.reviewer_id, "sla_timeout")
            self._outbox.notify(
                "review_released", RecipientRole.REVIEWER,
                request_id=saved.request_id, reviewer_id=previous.reviewer_id,
            )
        self._outbox.notify(
            "review_timed_out", RecipientRole.REQUESTER,
            request_id=saved.request_id, user_id=saved.requester_id, reason=reason,
        )
        return Exhausted(request=saved, reason=reason)
