"""Unit tests for RedisCompensationLog using fakeredis."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import fakeredis
import pytest

from reviewsla.core.exceptions import CompensationLogError
from reviewsla.models.request import CompensationRecord
from reviewsla.persistence.redis_backend import RedisCompensationLog

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _record(request_id: str = "r1", threshold: int = 48) -> CompensationRecord:
    return CompensationRecord(
        request_id=request_id, threshold_hours=threshold, user_id="u1",
        kind="currency", amount=25, granted_at=T0,
    )


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def backend(fake_server):
    with patch("redis.Redis", return_value=fakeredis.FakeRedis(server=fake_server, decode_responses=True)):
        return RedisCompensationLog(host="localhost", port=6379, db=0)


class TestInsertIfAbsent:
    def test_first_insert_wins(self, backend):
        assert backend.insert_if_absent(_record()) is True
        assert backend.insert_if_absent(_record()) is False

    def test_two_clients_on_one_server_insert_once(self, fake_server):
        results = []
        for _ in range(2):
            with patch("redis.Redis", return_value=fakeredis.FakeRedis(server=fake_server, decode_responses=True)):
                results.append(RedisCompensationLog().insert_if_absent(_record()))
        assert results == [True, False]

    def test_key_layout(self, backend, fake_server):
        backend.insert_if_absent(_record())
        raw = fakeredis.FakeRedis(server=fake_server, decode_responses=True)
        assert raw.exists("reviewsla:comp:r1:48") == 1


class TestReads:
    def test_get(self, backend):
        backend.insert_if_absent(_record())
        assert backend.get("r1", 48).kind == "currency"
        assert backend.get("r1", 72) is None

    def test_list_for_request(self, backend):
        backend.insert_if_absent(_record(threshold=72))
        backend.insert_if_absent(_record(threshold=48))
        backend.insert_if_absent(_record(request_id="r2"))
        assert [r.threshold_hours for r in backend.list_for_request("r1")] == [48, 72]


class TestErrorWrapping:
    def test_insert_wraps_redis_error(self):
        b = RedisCompensationLog.__new__(RedisCompensationLog)
        b._prefix = "reviewsla:comp"
        b._client = None  # will cause AttributeError -> CompensationLogError
        with pytest.raises(CompensationLogError):
            b.insert_if_absent(_record())
