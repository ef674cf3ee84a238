"""In-memory backends for unit tests and local development — dict-backed fakes."""

from __future__ import annotations

import threading
from typing import Optional

from reviewsla.core.exceptions import VersionConflictError
from reviewsla.models.request import CompensationRecord, ReviewRequest
from reviewsla.models.reviewer import ReviewerProfile


def _check_version(kind: str, record_id: str, stored_version: Optional[int], expected: int) -> None:
    if stored_version is None:
        if expected != 0:
            raise VersionConflictError(kind, record_id, expected)
    elif stored_version != expected:
        raise VersionConflictError(kind, record_id, expected)


class MemoryReviewStore:
    """Dict-backed IReviewStore. Commits are serialized by a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: dict[str, ReviewRequest] = {}
        self._reviewers: dict[str, ReviewerProfile] = {}

    def get_request(self, request_id: str) -> Optional[ReviewRequest]:
        with self._lock:
            req = self._requests.get(request_id)
            return req.model_copy(deep=True) if req else None

    def list_open_requests(self) -> list[ReviewRequest]:
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in sorted(self._requests.values(), key=lambda r: (r.created_at, r.request_id))
                if r.needs_sweep
            ]

    def get_reviewer(self, reviewer_id: str) -> Optional[ReviewerProfile]:
        with self._lock:
            rev = self._reviewers.get(reviewer_id)
            return rev.model_copy(deep=True) if rev else None

    def list_reviewers(self) -> list[ReviewerProfile]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._reviewers.values()]

    def commit(
        self,
        requests: list[ReviewRequest] | None = None,
        reviewers: list[ReviewerProfile] | None = None,
    ) -> tuple[list[ReviewRequest], list[ReviewerProfile]]:
        requests = requests or []
        reviewers = reviewers or []
        with self._lock:
            for req in requests:
                stored = self._requests.get(req.request_id)
                _check_version("request", req.request_id, stored.version if stored else None, req.version)
            for rev in reviewers:
                stored_rev = self._reviewers.get(rev.reviewer_id)
                _check_version(
                    "reviewer", rev.reviewer_id, stored_rev.version if stored_rev else None, rev.version,
                )

            saved_requests = [r.model_copy(update={"version": r.version + 1}, deep=True) for r in requests]
            saved_reviewers = [r.model_copy(update={"version": r.version + 1}, deep=True) for r in reviewers]
            for req in saved_requests:
                self._requests[req.request_id] = req.model_copy(deep=True)
            for rev in saved_reviewers:
                self._reviewers[rev.reviewer_id] = rev.model_copy(deep=True)
        return saved_requests, saved_reviewers


class MemoryCompensationLog:
    """Dict-backed ICompensationLog."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[tuple[str, int], CompensationRecord] = {}

    def insert_if_absent(self, record: CompensationRecord) -> bool:
        key = (record.request_id, record.threshold_hours)
        with self._lock:
            if key in self._records:
                return False
            self._records[key] = record.model_copy(deep=True)
            return True

    def get(self, request_id: str, threshold_hours: int) -> Optional[CompensationRecord]:
        with self._lock:
            record = self._records.get((request_id, threshold_hours))
            return record.model_copy(deep=True) if record else None

    def list_for_request(self, request_id: str) -> list[CompensationRecord]:
        with self._lock:
            return sorted(
                (r for (rid, _), r in self._records.items() if rid == request_id),
                key=lambda r: r.threshold_hours,
            )

    @property
    def count(self) -> int:
        return len(self._records)
