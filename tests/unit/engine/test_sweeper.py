"""Sweep scenarios driven by a manual clock."""

from __future__ import annotations

import pytest

from reviewsla.core.config import SLAConfig
from reviewsla.core.exceptions import CompensationLogError, VersionConflictError
from reviewsla.models.request import RequestStatus
from reviewsla.models.sla import ServiceLevelBand
from tests.fakes import MemoryCompensationLog, MemoryReviewStore


@pytest.fixture
def pool(add_reviewer):
    add_reviewer("a", sla_score=100.0)
    add_reviewer("b", sla_score=90.0)
    add_reviewer("c", sla_score=80.0)


def _held_counts(engine) -> dict[str, int]:
    held: dict[str, int] = {}
    for req in engine.requests.open_requests():
        if req.assigned_reviewer_id:
            held[req.assigned_reviewer_id] = held.get(req.assigned_reviewer_id, 0) + 1
    return held


class TestPendingRequests:
    def test_assigns_once_a_reviewer_appears(self, engine, add_reviewer, clock):
        req = engine.submit_request("u1")
        clock.advance(hours=2)
        assert engine.sweep().no_capacity == 1

        add_reviewer("a")
        report = engine.sweep()
        assert report.assigned == 1
        assert engine.get_request(req.request_id).assigned_reviewer_id == "a"

    def test_delay_notice_sent_once(self, engine, clock, notifications):
        engine.submit_request("u1")
        clock.advance(hours=11)
        assert engine.sweep().delay_notices == 0
        clock.advance(hours=1)
        assert engine.sweep().delay_notices == 1
        clock.advance(hours=1)
        assert engine.sweep().delay_notices == 0
        assert notifications.templates("requester").count("assignment_delayed") == 1


class TestBands:
    def test_band_change_announced_once(self, engine, add_reviewer, clock, notifications):
        add_reviewer("a")
        req = engine.submit_request("u1")
        clock.advance(hours=7)
        assert engine.sweep().band_changes == 1
        clock.advance(hours=1)
        assert engine.sweep().band_changes == 0

        assert engine.get_request(req.request_id).current_band == ServiceLevelBand.STANDARD
        assert notifications.templates("requester").count("sla_standard") == 1
        assert notifications.templates("reviewer").count("sla_standard") == 1

    def test_band_skips_straight_to_current(self, engine, add_reviewer, clock):
        add_reviewer("a")
        req = engine.submit_request("u1")
        clock.advance(hours=30)
        engine.sweep()
        assert engine.get_request(req.request_id).current_band == ServiceLevelBand.DELAYED

    def test_delayed_band_penalizes_slow_holder(self, engine, add_reviewer, clock, reputation):
        add_reviewer("a")
        engine.submit_request("u1")
        clock.advance(hours=30)
        engine.sweep()
        assert ("a", "sla_delayed") in reputation.penalties()


class TestReminders:
    def test_each_reminder_sent_once(self, engine, add_reviewer, clock, notifications):
        add_reviewer("a")
        engine.submit_request("u1")
        clock.advance(hours=12)
        assert engine.sweep().reminders == 1
        assert engine.sweep().reminders == 0
        clock.advance(hours=12)
        assert engine.sweep().reminders == 1
        clock.advance(hours=12)
        engine.sweep()

        reviewer_templates = notifications.templates("reviewer")
        assert reviewer_templates.count("gentle_reminder_12h") == 1
        assert reviewer_templates.count("escalation_24h") == 1
        assert reviewer_templates.count("final_warning_36h") == 1

    def test_pending_request_gets_no_reminders(self, engine, clock):
        engine.submit_request("u1")
        clock.advance(hours=13)
        assert engine.sweep().reminders == 0


class TestRedistributionScenario:
    def test_stalled_request_moves_once_per_holder(self, engine, pool, clock):
        req = engine.submit_request("u1")
        clock.advance(hours=49)
        assert engine.sweep().redistributed == 1
        assert engine.sweep().redistributed == 0

        moved = engine.get_request(req.request_id)
        assert moved.assigned_reviewer_id == "b"
        assert moved.escalation_level == 1
        assert moved.current_band == ServiceLevelBand.CRITICAL

        clock.advance(hours=48)
        assert engine.sweep().redistributed == 1
        moved = engine.get_request(req.request_id)
        assert moved.assigned_reviewer_id == "c"
        assert moved.backups == ["a", "b"]
        assert _held_counts(engine) == {"c": 1}
        assert {r.reviewer_id: r.current for r in engine.list_reviewers()} == {"a": 0, "b": 0, "c": 1}

    def test_compensation_follows_elapsed_time(self, engine, pool, clock, rewards, notifications):
        req = engine.submit_request("u1")
        clock.advance(hours=49)
        engine.sweep()
        assert [g.idempotency_key for g in rewards.grants] == [f"{req.request_id}:48h"]

        clock.advance(hours=48)
        report = engine.sweep()
        assert report.compensations == 2
        assert [g.kind for g in rewards.grants] == ["currency", "priority_queue"]
        assert notifications.templates("admin") == ["manual_compensation_queued"]
        assert engine.get_request(req.request_id).compensated_thresholds == [48, 72, 96]

    def test_only_reviewer_times_out_with_full_compensation(self, engine, add_reviewer, clock, rewards):
        add_reviewer("a")
        req = engine.submit_request("u1")
        clock.advance(hours=49)
        report = engine.sweep()

        assert report.timed_out == 1
        assert report.compensations == 3
        timed_out = engine.get_request(req.request_id)
        assert timed_out.status == RequestStatus.TIMED_OUT
        assert [r.threshold_hours for r in engine.compensations_for(req.request_id)] == [48, 72, 96]
        assert len(rewards.grants) == 2
        assert engine.directory.get("a").current == 0

        clock.advance(hours=100)
        assert engine.sweep().scanned == 0


class TestHopBoundScenario:
    @pytest.fixture
    def sla_config(self):
        return SLAConfig(dispatcher="inline", run_sweeper=False, max_escalation_hops=1)

    def test_second_stall_times_out(self, engine, pool, clock):
        req = engine.submit_request("u1")
        clock.advance(hours=49)
        engine.sweep()
        clock.advance(hours=48)
        report = engine.sweep()

        assert report.timed_out == 1
        assert engine.get_request(req.request_id).status == RequestStatus.TIMED_OUT
        assert all(r.current == 0 for r in engine.list_reviewers())


class TestCompensationWithoutReviewers:
    def test_pending_request_is_compensated_once_per_tier(self, engine, clock, rewards):
        req = engine.submit_request("u1")
        clock.advance(hours=48)
        assert engine.sweep().compensations == 1
        assert engine.sweep().compensations == 0
        clock.advance(hours=24)
        assert engine.sweep().compensations == 1
        assert [g.amount for g in rewards.grants] == [25, 3]
        assert engine.get_request(req.request_id).status == RequestStatus.PENDING

    def test_completed_request_is_never_compensated(self, engine, add_reviewer, clock, rewards):
        add_reviewer("a")
        req = engine.submit_request("u1")
        clock.advance(hours=20)
        engine.complete_request(req.request_id, "a")
        clock.advance(hours=80)
        engine.sweep()
        assert engine.compensations_for(req.request_id) == []
        assert all(g.kind == "sla_reward" for g in rewards.grants)


class FlakyStore(MemoryReviewStore):
    """Fails the next commit as if another writer got there first."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_next = False

    def commit(self, requests=None, reviewers=None):
        if self.fail_next:
            self.fail_next = False
            raise VersionConflictError("request", "raced", 1)
        return super().commit(requests, reviewers)


class TestConflicts:
    @pytest.fixture
    def store(self):
        return FlakyStore()

    def test_conflict_defers_request_to_next_tick(self, engine, store, add_reviewer, clock):
        req = engine.submit_request("u1")
        add_reviewer("a")
        store.fail_next = True
        report = engine.sweep()
        assert report.conflicts == 1
        assert engine.get_request(req.request_id).status == RequestStatus.PENDING

        report = engine.sweep()
        assert report.conflicts == 0
        assert report.assigned == 1


class TestDocumentedScenarios:
    def test_capacity_freed_is_used_on_next_sweep(self, engine, add_reviewer, clock):
        add_reviewer("a", max_concurrent=1)
        first = engine.submit_request("u1")
        waiting = engine.submit_request("u2")
        assert waiting.status == RequestStatus.PENDING

        clock.advance(hours=1)
        engine.complete_request(first.request_id, "a")
        assert engine.sweep().assigned == 1
        assert engine.get_request(waiting.request_id).assigned_reviewer_id == "a"
        assert engine.directory.get("a").current == 1

    def test_one_compensation_across_sweeps_at_49h_and_50h(self, engine, pool, clock, rewards):
        req = engine.submit_request("u1")
        clock.advance(hours=7)
        engine.sweep()
        assert engine.get_request(req.request_id).current_band == ServiceLevelBand.STANDARD

        clock.advance(hours=42)
        engine.sweep()
        clock.advance(hours=1)
        engine.sweep()

        moved = engine.get_request(req.request_id)
        assert moved.escalation_level == 1
        assert [r.threshold_hours for r in engine.compensations_for(req.request_id)] == [48]
        assert [g.idempotency_key for g in rewards.grants] == [f"{req.request_id}:48h"]


class LogOutage(MemoryCompensationLog):
    """Rejects inserts for the listed requests, as if the backend were unreachable."""

    def __init__(self) -> None:
        super().__init__()
        self.down_for: set[str] = set()

    def insert_if_absent(self, record):
        if record.request_id in self.down_for:
            raise CompensationLogError("compensation log unreachable")
        return super().insert_if_absent(record)


class TestBackendFailures:
    @pytest.fixture
    def compensation_log(self):
        return LogOutage()

    def test_log_outage_is_isolated_and_retried(self, engine, compensation_log, clock, rewards):
        first = engine.submit_request("u1")
        second = engine.submit_request("u2")
        compensation_log.down_for.add(first.request_id)
        clock.advance(hours=49)

        report = engine.sweep()
        assert report.errors == 1
        assert report.compensations == 1
        assert [r.threshold_hours for r in engine.compensations_for(second.request_id)] == [48]
        assert engine.get_request(first.request_id).compensated_thresholds == []

        compensation_log.down_for.clear()
        report = engine.sweep()
        assert report.errors == 0
        assert report.compensations == 1
        assert engine.get_request(first.request_id).compensated_thresholds == [48]
        assert engine.sweep().compensations == 0
        assert sorted(g.idempotency_key for g in rewards.grants) == sorted(
            [f"{first.request_id}:48h", f"{second.request_id}:48h"]
        )

    def test_grant_recorded_before_lost_commit_is_not_paid_twice(self, engine, store, clock, rewards):
        req = engine.submit_request("u1")
        clock.advance(hours=49)
        engine.sweep()
        # Drop the mirrored thresholds as if the request commit never landed.
        stored = engine.get_request(req.request_id)
        store.commit(requests=[stored.model_copy(update={"compensated_thresholds": []})])

        report = engine.sweep()
        assert report.compensations == 0
        assert engine.get_request(req.request_id).compensated_thresholds == [48]
        assert len(rewards.grants) == 1

    def test_final_compensation_retried_after_time_out(self, engine, add_reviewer, compensation_log, clock):
        add_reviewer("a")
        req = engine.submit_request("u1")
        compensation_log.down_for.add(req.request_id)
        clock.advance(hours=49)

        report = engine.sweep()
        assert report.timed_out == 1
        assert report.errors == 1
        assert engine.get_request(req.request_id).status == RequestStatus.TIMED_OUT
        assert engine.compensations_for(req.request_id) == []

        compensation_log.down_for.clear()
        report = engine.sweep()
        assert report.scanned == 1
        assert report.compensations == 3
        assert engine.get_request(req.request_id).compensated_thresholds == [48, 72, 96]
        assert engine.sweep().scanned == 0


class TestLateAssignment:
    def test_request_assigned_after_long_wait_is_not_moved_at_once(
        self, engine, add_reviewer, clock, reputation
    ):
        req = engine.submit_request("u1")
        clock.advance(hours=50)
        add_reviewer("a", sla_score=100.0)
        add_reviewer("b", sla_score=90.0)

        report = engine.sweep()
        assert report.assigned == 1
        assert report.redistributed == 0
        held = engine.get_request(req.request_id)
        assert held.assigned_reviewer_id == "a"
        assert held.escalation_level == 0
        assert engine.directory.get("a").sla_score == 100.0
        assert ("a", "sla_timeout_redistribution") not in reputation.penalties()

        clock.advance(hours=48)
        assert engine.sweep().redistributed == 1
        assert engine.get_request(req.request_id).assigned_reviewer_id == "b"
