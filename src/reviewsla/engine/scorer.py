"""Match scorer — compatibility of a reviewer for a request right now.

    score = sla_score * 0.4                          reliability    (40%)
          + max(0, 50 - average_response_hours) * 0.6  responsiveness (30%)
          + min(current_streak * 2, 20)              consistency    (20%)
          + 10 if the reviewer's local hour is preferred  availability (10%)

Pure: no I/O, no hidden clock.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from reviewsla.models.reviewer import ReviewerProfile

RELIABILITY_WEIGHT = 0.4
RESPONSE_CEILING_HOURS = 50.0
RESPONSE_WEIGHT = 0.6
STREAK_POINTS = 2
STREAK_CAP = 20
AVAILABILITY_BONUS = 10.0


def local_hour(reviewer: ReviewerProfile, now: datetime) -> int:
    try:
        zone = ZoneInfo(reviewer.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        zone = ZoneInfo("UTC")
    return now.astimezone(zone).hour


def match_score(reviewer: ReviewerProfile, now: datetime) -> float:
    score = reviewer.sla_score * RELIABILITY_WEIGHT
    score += max(0.0, RESPONSE_CEILING_HOURS - reviewer.average_response_hours) * RESPONSE_WEIGHT
    score += min(reviewer.current_streak * STREAK_POINTS, STREAK_CAP)
    if local_hour(reviewer, now) in reviewer.preferred_hours:
        score += AVAILABILITY_BONUS
    return score
