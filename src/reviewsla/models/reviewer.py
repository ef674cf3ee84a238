"""Reviewer profile: capacity, availability and SLA statistics."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ReviewerProfile(BaseModel):
    """A reviewer in the directory.

    ``current`` is the number of requests held in ``assigned``/``in_review``;
    it only moves inside the same commit as the matching request transition.
    """

    reviewer_id: str
    display_name: str = ""

    # --- Capacity ---
    max_concurrent: int = 5
    current: int = 0

    # --- Availability ---
    is_active: bool = True
    auto_assign_enabled: bool = True
    timezone: str = "UTC"
    preferred_hours: list[int] = Field(default_factory=list)  # local 0-23
    specialties: list[str] = Field(default_factory=list)

    # --- SLA statistics ---
    sla_score: float = 100.0
    average_response_hours: float = 0.0
    current_streak: int = 0
    optimal_count: int = 0
    standard_count: int = 0
    delayed_count: int = 0
    timeout_count: int = 0
    total_reviews: int = 0
    last_activity: Optional[datetime] = None

    version: int = 0

    @property
    def has_capacity(self) -> bool:
        return self.current < self.max_concurrent

    def is_assignable(self) -> bool:
        return self.is_active and self.auto_assign_enabled and self.has_capacity
