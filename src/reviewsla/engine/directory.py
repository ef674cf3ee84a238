"""Reviewer directory — registry of reviewers, capacity and SLA statistics.

The directory is the source of truth for who can take review work:
- Inactive reviewers, and reviewers who opted out of auto-assignment,
  are never offered new requests.
- A reviewer at ``max_concurrent`` is never offered new requests.
- The requester is never offered their own request.

Statistic updates are pure helpers returning modified copies; callers
commit them together with the request transition that caused them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from reviewsla.core.exceptions import ReviewerNotFoundError
from reviewsla.core.protocols import IReviewStore
from reviewsla.models.reviewer import ReviewerProfile
from reviewsla.models.sla import (
    REDISTRIBUTION_SLA_PENALTY,
    STREAK_MAX_HOURS,
    ServiceLevelBand,
    band_for_elapsed,
)

logger = logging.getLogger(__name__)

# Fields an operator may change on an existing reviewer; capacity usage
# and statistics are owned by the engine.
_PROFILE_FIELDS = (
    "display_name", "max_concurrent", "is_active", "auto_assign_enabled",
    "timezone", "preferred_hours", "specialties",
)

_BAND_COUNTERS = {
    ServiceLevelBand.OPTIMAL: "optimal_count",
    ServiceLevelBand.STANDARD: "standard_count",
    ServiceLevelBand.DELAYED: "delayed_count",
    ServiceLevelBand.CRITICAL: "timeout_count",
}


class ReviewerDirectory:
    """Reviewer registry over an IReviewStore."""

    def __init__(self, store: IReviewStore) -> None:
        self._store = store

    def register(self, profile: ReviewerProfile) -> ReviewerProfile:
        """Register a new reviewer or update an existing one's availability.

        Raises ValueError if:
        - reviewer_id is blank
        - sla_score is out of [0, 100]
        - max_concurrent < 1
        - a preferred hour is outside 0-23
        - an existing reviewer would get max_concurrent below the requests
          they already hold
        """
        canonical_id = profile.reviewer_id.strip()
        if not canonical_id:
            raise ValueError("Cannot register reviewer with blank ID")
        if not (0.0 <= profile.sla_score <= 100.0):
            raise ValueError(f"SLA score must be in [0, 100], got {profile.sla_score}")
        if profile.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {profile.max_concurrent}")
        bad_hours = [h for h in profile.preferred_hours if not 0 <= h <= 23]
        if bad_hours:
            raise ValueError(f"Preferred hours must be in 0-23, got {bad_hours}")

        existing = self._store.get_reviewer(canonical_id)
        if existing is None:
            record = profile.model_copy(update={"reviewer_id": canonical_id, "current": 0, "version": 0})
        else:
            if profile.max_concurrent < existing.current:
                raise ValueError(
                    f"max_concurrent {profile.max_concurrent} is below the {existing.current} "
                    f"requests reviewer {canonical_id} holds"
                )
            record = existing.model_copy(
                update={name: getattr(profile, name) for name in _PROFILE_FIELDS}
            )
        _, saved = self._store.commit(reviewers=[record])
        logger.info("registered reviewer %s (max_concurrent=%d)", canonical_id, saved[0].max_concurrent)
        return saved[0]

    def get(self, reviewer_id: str) -> ReviewerProfile:
        profile = self._store.get_reviewer(reviewer_id.strip())
        if profile is None:
            raise ReviewerNotFoundError(f"No reviewer {reviewer_id!r}")
        return profile

    def find(self, reviewer_id: str) -> Optional[ReviewerProfile]:
        return self._store.get_reviewer(reviewer_id.strip())

    def all_reviewers(self) -> list[ReviewerProfile]:
        return sorted(self._store.list_reviewers(), key=lambda r: r.reviewer_id)

    def assignable(self, exclude_ids: set[str] | None = None) -> list[ReviewerProfile]:
        """Active, auto-assignable reviewers with spare capacity."""
        exclude = exclude_ids or set()
        return [
            r for r in self.all_reviewers()
            if r.is_assignable() and r.reviewer_id not in exclude
        ]

    @property
    def active_count(self) -> int:
        return sum(1 for r in self._store.list_reviewers() if r.is_active)


# ----------------------------------------------------------------------
# Pure profile updates
# ----------------------------------------------------------------------

def take_slot(profile: ReviewerProfile) -> ReviewerProfile:
    if not profile.has_capacity:
        raise ValueError(
            f"Reviewer {profile.reviewer_id} at capacity ({profile.current}/{profile.max_concurrent})"
        )
    return profile.model_copy(update={"current": profile.current + 1})


def release_slot(profile: ReviewerProfile) -> ReviewerProfile:
    return profile.model_copy(update={"current": max(0, profile.current - 1)})


def sla_score_from_counts(optimal: int, standard: int, delayed: int, timeout: int) -> float:
    """Weighted share of on-time work: optimal=100, standard=80, delayed=40, timeout=0."""
    total = optimal + standard + delayed + timeout
    if total == 0:
        return 100.0
    return float(round((optimal * 100 + standard * 80 + delayed * 40) / total))


def record_response(profile: ReviewerProfile, response_hours: float, now: datetime) -> ReviewerProfile:
    """Fold one completed review into the reviewer's statistics."""
    band = band_for_elapsed(response_hours)
    counts = {
        "optimal_count": profile.optimal_count,
        "standard_count": profile.standard_count,
        "delayed_count": profile.delayed_count,
        "timeout_count": profile.timeout_count,
    }
    counts[_BAND_COUNTERS[band]] += 1

    total = profile.total_reviews + 1
    average = ((profile.average_response_hours * profile.total_reviews) + response_hours) / total
    streak = profile.current_streak + 1 if response_hours <= STREAK_MAX_HOURS else 0

    return profile.model_copy(update={
        **counts,
        "total_reviews": total,
        "average_response_hours": average,
        "current_streak": streak,
        "sla_score": sla_score_from_counts(
            counts["optimal_count"], counts["standard_count"],
            counts["delayed_count"], counts["timeout_count"],
        ),
        "last_activity": now,
    })


def apply_timeout_penalty(profile: ReviewerProfile) -> ReviewerProfile:
    """Reliability penalty for a reviewer whose request was taken away."""
    return profile.model_copy(update={
        "sla_score": max(0.0, profile.sla_score - REDISTRIBUTION_SLA_PENALTY),
        "current_streak": 0,
        "timeout_count": profile.timeout_count + 1,
    })
