"""Shared test doubles — re-export memory backends and recording ports."""

from __future__ import annotations

from reviewsla.core.clock import ManualClock
from reviewsla.persistence.memory_backend import MemoryCompensationLog, MemoryReviewStore
from reviewsla.ports.memory import (
    RecordingNotificationPort,
    RecordingReputationPort,
    RecordingRewardPort,
)

__all__ = [
    "ManualClock",
    "MemoryCompensationLog",
    "MemoryReviewStore",
    "RecordingNotificationPort",
    "RecordingReputationPort",
    "RecordingRewardPort",
]
