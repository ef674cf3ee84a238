"""SLA sweeper — the periodic pass over every open review request.

For each pending/assigned/in-review request, in order:
1. Pending requests get another assignment attempt; a requester who has
   waited past ``pending_max_wait_hours`` gets a one-time delay notice.
2. The SLA band is recomputed from hours since creation. Bands only move
   forward; reviewer reminders that came due are sent once.
3. Requests held 48h by their current reviewer are redistributed (or time
   out at the hop bound).
4. Crossed compensation thresholds are granted once through the compensation
   log, then mirrored onto the request.

Every step commits against the version produced by the previous step. A
version conflict means a reviewer (or another sweep) got there first: the
request is left alone until the next tick, so one tick is always bounded.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from reviewsla.core.config import SLAConfig
from reviewsla.core.exceptions import (
    CompensationLogError,
    InvalidTransitionError,
    StoreError,
    VersionConflictError,
)
from reviewsla.core.protocols import IClock
from reviewsla.engine.assignment import Assignment, AssignmentService
from reviewsla.engine.compensation import CompensationGate
from reviewsla.engine.outbox import Outbox
from reviewsla.engine.redistribution import Reassignment, RedistributionEngine
from reviewsla.engine.requests import RequestStore
from reviewsla.models.request import HELD_STATUSES, RequestStatus, ReviewRequest
from reviewsla.models.sla import (
    COMPENSATION_TIERS,
    REMINDERS,
    STREAK_MAX_HOURS,
    RecipientRole,
    ServiceLevelBand,
    band_for_elapsed,
    crossed_tiers,
    later_band,
)

logger = logging.getLogger(__name__)


class SweepReport(BaseModel):
    """Counters for one tick."""

    started_at: datetime
    scanned: int = 0
    assigned: int = 0
    no_capacity: int = 0
    band_changes: int = 0
    reminders: int = 0
    delay_notices: int = 0
    redistributed: int = 0
    timed_out: int = 0
    compensations: int = 0
    conflicts: int = 0
    skipped: int = 0
    errors: int = 0


class SLASweeper:
    def __init__(
        self,
        *,
        requests: RequestStore,
        assignment: AssignmentService,
        redistribution: RedistributionEngine,
        gate: CompensationGate,
        outbox: Outbox,
        clock: IClock,
        config: SLAConfig,
    ) -> None:
        self._requests = requests
        self._assignment = assignment
        self._redistribution = redistribution
        self._gate = gate
        self._outbox = outbox
        self._clock = clock
        self._config = config

    def tick(self) -> SweepReport:
        now = self._clock.now()
        report = SweepReport(started_at=now)
        for request in self._requests.open_requests():
            report.scanned += 1
            try:
                self._sweep_one(request, now, report)
            except VersionConflictError as exc:
                report.conflicts += 1
                logger.debug("request %s left for next tick: %s", request.request_id, exc)
            except InvalidTransitionError as exc:
                report.skipped += 1
                logger.info("no-op for request %s: %s", request.request_id, exc)
            except (StoreError, CompensationLogError) as exc:
                report.errors += 1
                logger.warning("backend failure on request %s, retrying next tick: %s", request.request_id, exc)

        logger.info(
            "sweep scanned=%d assigned=%d bands=%d redistributed=%d timed_out=%d "
            "compensations=%d conflicts=%d errors=%d",
            report.scanned, report.assigned, report.band_changes, report.redistributed,
            report.timed_out, report.compensations, report.conflicts, report.errors,
        )
        return report

    def _sweep_one(self, request: ReviewRequest, now: datetime, report: SweepReport) -> None:
        if request.owes_final_compensation:
            self._compensate(request, request.elapsed_hours(now), report)
            return
        if request.is_terminal:
            report.skipped += 1
            return

        elapsed = request.elapsed_hours(now)

        if request.status == RequestStatus.PENDING:
            outcome = self._assignment.assign(request)
            if isinstance(outcome, Assignment):
                request = outcome.request
                report.assigned += 1
            else:
                report.no_capacity += 1

        request = self._escalate(request, now, elapsed, report)

        if self._is_stalled(request, now, elapsed):
            outcome = self._redistribution.redistribute(request)
            request = outcome.request
            if isinstance(outcome, Reassignment):
                report.redistributed += 1
            else:
                report.timed_out += 1

        self._compensate(request, elapsed, report)

    # ------------------------------------------------------------------
    # Band, reminders, delay notice
    # ------------------------------------------------------------------

    def _escalate(
        self, request: ReviewRequest, now: datetime, elapsed: float, report: SweepReport,
    ) -> ReviewRequest:
        changes: dict[str, Any] = {}
        target = later_band(request.current_band, band_for_elapsed(elapsed))
        if target != request.current_band:
            changes["current_band"] = target

        # Reminders run on the current reviewer's own clock.
        held_hours = request.held_hours(now) if request.status in HELD_STATUSES else 0.0
        due_reminders = [
            r for r in REMINDERS
            if held_hours >= r.threshold_hours and r.threshold_hours not in request.reminders_sent
        ]
        if due_reminders:
            changes["reminders_sent"] = sorted(
                {*request.reminders_sent, *(r.threshold_hours for r in due_reminders)}
            )

        send_delay_notice = (
            request.status == RequestStatus.PENDING
            and not request.delay_notified
            and elapsed >= self._config.pending_max_wait_hours
        )
        if send_delay_notice:
            changes["delay_notified"] = True

        if not changes:
            return request

        saved, _ = self._requests.commit([request.model_copy(update=changes, deep=True)])
        updated = saved[0]

        if "current_band" in changes:
            report.band_changes += 1
            self._announce_band(updated, target, now, elapsed)
        for reminder in due_reminders:
            report.reminders += 1
            self._outbox.notify(
                reminder.template, RecipientRole.REVIEWER,
                request_id=updated.request_id, reviewer_id=updated.assigned_reviewer_id,
                held_hours=round(held_hours, 2),
            )
        if send_delay_notice:
            report.delay_notices += 1
            self._outbox.notify(
                "assignment_delayed", RecipientRole.REQUESTER,
                request_id=updated.request_id, user_id=updated.requester_id,
                elapsed_hours=round(elapsed, 2),
            )
        return updated

    def _announce_band(
        self, request: ReviewRequest, band: ServiceLevelBand, now: datetime, elapsed: float,
    ) -> None:
        logger.info("request %s entered band %s at %.1fh", request.request_id, band.value, elapsed)
        template = band.policy.template
        self._outbox.notify(
            template, RecipientRole.REQUESTER,
            request_id=request.request_id, user_id=request.requester_id, band=band.value,
        )
        reviewer_id: Optional[str] = request.assigned_reviewer_id
        if reviewer_id and request.status in HELD_STATUSES:
            self._outbox.notify(
                template, RecipientRole.REVIEWER,
                request_id=request.request_id, reviewer_id=reviewer_id, band=band.value,
            )
            if band.rank >= ServiceLevelBand.DELAYED.rank and request.held_hours(now) > STREAK_MAX_HOURS:
                self._outbox.penalize(reviewer_id, f"sla_{band.value}")

    # ------------------------------------------------------------------
    # Redistribution and compensation
    # ------------------------------------------------------------------

    def _is_stalled(self, request: ReviewRequest, now: datetime, elapsed: float) -> bool:
        limit = self._config.redistribution_hours
        if request.status not in HELD_STATUSES or elapsed < limit:
            return False
        # Only time under the current holder counts, including on the first hop.
        return request.held_hours(now) >= limit

    def _compensate(self, request: ReviewRequest, elapsed: float, report: SweepReport) -> None:
        if request.status == RequestStatus.COMPLETED:
            return
        # A timed-out request will never be reviewed: every tier is owed.
        due = COMPENSATION_TIERS if request.status == RequestStatus.TIMED_OUT else crossed_tiers(elapsed)
        owed = [t for t in due if t.threshold_hours not in request.compensated_thresholds]
        if not owed:
            return

        # The compensation log is authoritative; compensated_thresholds mirrors
        # whatever it has confirmed so later ticks can skip the lookup.
        confirmed: list[int] = []
        failure: Optional[CompensationLogError] = None
        for tier in owed:
            try:
                granted = self._gate.grant_tier(request, tier)
            except CompensationLogError as exc:
                failure = exc
                break
            if granted:
                report.compensations += 1
            confirmed.append(tier.threshold_hours)

        if confirmed:
            recorded = sorted({*request.compensated_thresholds, *confirmed})
            self._requests.commit(
                [request.model_copy(update={"compensated_thresholds": recorded}, deep=True)]
            )
        if failure is not None:
            raise failure
