"""Request store — lifecycle state machine over an IReviewStore."""

from __future__ import annotations

import uuid
from typing import Any

from reviewsla.core.exceptions import InvalidTransitionError, RequestNotFoundError
from reviewsla.core.protocols import IClock, IReviewStore
from reviewsla.models.request import ALLOWED_TRANSITIONS, RequestStatus, ReviewRequest
from reviewsla.models.reviewer import ReviewerProfile


class RequestStore:
    """Authoritative access to review requests.

    Usage:
        store = RequestStore(backend, clock)
        req = store.submit("user-1", subject_id="evidence-9")
        changed = RequestStore.transition(req, RequestStatus.ASSIGNED, assigned_reviewer_id="rev-1")
        store.commit([changed], [reviewer_with_slot])
    """

    def __init__(self, backend: IReviewStore, clock: IClock) -> None:
        self._backend = backend
        self._clock = clock

    def submit(self, requester_id: str, subject_id: str = "",
               request_id: str | None = None) -> ReviewRequest:
        requester_id = requester_id.strip()
        if not requester_id:
            raise ValueError("Cannot submit a request without a requester")
        request = ReviewRequest(
            request_id=request_id or uuid.uuid4().hex,
            requester_id=requester_id,
            subject_id=subject_id,
            created_at=self._clock.now(),
        )
        saved, _ = self._backend.commit(requests=[request])
        return saved[0]

    def get(self, request_id: str) -> ReviewRequest:
        request = self._backend.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(f"No review request {request_id!r}")
        return request

    def open_requests(self) -> list[ReviewRequest]:
        return self._backend.list_open_requests()

    def commit(
        self,
        requests: list[ReviewRequest] | None = None,
        reviewers: list[ReviewerProfile] | None = None,
    ) -> tuple[list[ReviewRequest], list[ReviewerProfile]]:
        return self._backend.commit(requests=requests, reviewers=reviewers)

    @staticmethod
    def transition(request: ReviewRequest, target: RequestStatus, **changes: Any) -> ReviewRequest:
        """Return a copy moved to ``target``; raises InvalidTransitionError if not allowed."""
        if target not in ALLOWED_TRANSITIONS[request.status]:
            raise InvalidTransitionError(request.request_id, request.status.value, target.value)
        return request.model_copy(update={"status": target, **changes}, deep=True)
