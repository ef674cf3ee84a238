"""Engine fixtures: memory store, recording ports, manual clock, inline dispatch."""

from __future__ import annotations

import pytest

from reviewsla.core.config import SLAConfig
from reviewsla.engine.dispatch import InlineDispatcher
from reviewsla.engine.service import ReviewSLAEngine
from reviewsla.models.reviewer import ReviewerProfile
from tests.fakes import (
    ManualClock,
    MemoryCompensationLog,
    MemoryReviewStore,
    RecordingNotificationPort,
    RecordingReputationPort,
    RecordingRewardPort,
)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store():
    return MemoryReviewStore()


@pytest.fixture
def compensation_log():
    return MemoryCompensationLog()


@pytest.fixture
def notifications():
    return RecordingNotificationPort()


@pytest.fixture
def rewards():
    return RecordingRewardPort()


@pytest.fixture
def reputation():
    return RecordingReputationPort()


@pytest.fixture
def sla_config():
    return SLAConfig(dispatcher="inline", run_sweeper=False)


@pytest.fixture
def engine(store, compensation_log, notifications, rewards, reputation, clock, sla_config):
    return ReviewSLAEngine(
        store=store,
        compensation_log=compensation_log,
        notifications=notifications,
        rewards=rewards,
        reputation=reputation,
        clock=clock,
        config=sla_config,
        dispatcher=InlineDispatcher(),
    )


@pytest.fixture
def add_reviewer(engine):
    def _add(reviewer_id: str, **fields) -> ReviewerProfile:
        return engine.register_reviewer(ReviewerProfile(reviewer_id=reviewer_id, **fields))
    return _add
