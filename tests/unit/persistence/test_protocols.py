"""Backends and ports satisfy their Protocol interfaces structurally."""

from __future__ import annotations

from unittest.mock import patch

import fakeredis

from reviewsla.core.clock import ManualClock, SystemClock
from reviewsla.core.config import AppSettings
from reviewsla.core.protocols import IClock, IDispatcher, INotificationPort, IReputationPort, IRewardPort
from reviewsla.engine.dispatch import InlineDispatcher, ThreadPoolDispatcher
from reviewsla.persistence import create_persistence
from reviewsla.persistence.protocols import ICompensationLog, IReviewStore
from reviewsla.persistence.redis_backend import RedisCompensationLog
from tests.fakes import (
    MemoryCompensationLog,
    MemoryReviewStore,
    RecordingNotificationPort,
    RecordingReputationPort,
    RecordingRewardPort,
)


def test_memory_backends_satisfy_protocols():
    assert isinstance(MemoryReviewStore(), IReviewStore)
    assert isinstance(MemoryCompensationLog(), ICompensationLog)


def test_redis_log_satisfies_protocol():
    with patch("redis.Redis", return_value=fakeredis.FakeRedis(decode_responses=True)):
        assert isinstance(RedisCompensationLog(), ICompensationLog)


def test_recording_ports_satisfy_protocols():
    assert isinstance(RecordingNotificationPort(), INotificationPort)
    assert isinstance(RecordingRewardPort(), IRewardPort)
    assert isinstance(RecordingReputationPort(), IReputationPort)


def test_clocks_and_dispatchers():
    assert isinstance(SystemClock(), IClock)
    assert isinstance(ManualClock(), IClock)
    assert isinstance(InlineDispatcher(), IDispatcher)
    dispatcher = ThreadPoolDispatcher(max_workers=1)
    assert isinstance(dispatcher, IDispatcher)
    dispatcher.shutdown()


def test_create_persistence_defaults_to_memory():
    store, log = create_persistence(AppSettings())
    assert isinstance(store, MemoryReviewStore)
    assert isinstance(log, MemoryCompensationLog)


def test_create_persistence_redis_log():
    settings = AppSettings(compensation_log="redis")
    with patch("redis.Redis", return_value=fakeredis.FakeRedis(decode_responses=True)):
        _, log = create_persistence(settings)
    assert isinstance(log, RedisCompensationLog)
