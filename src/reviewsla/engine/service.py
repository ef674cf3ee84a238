"""ReviewSLAEngine — the injectable facade wiring every component together.

One instance holds the clock, the stores and the outbound ports; tests
build it with in-memory doubles and a ManualClock, production builds it
from AppSettings via ``build_engine``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from reviewsla.core.clock import SystemClock
from reviewsla.core.config import AppSettings, SLAConfig
from reviewsla.core.exceptions import (
    InvalidTransitionError,
    ReviewerMismatchError,
    ReviewSLAError,
    VersionConflictError,
)
from reviewsla.core.protocols import (
    IClock,
    ICompensationLog,
    IDispatcher,
    INotificationPort,
    IReputationPort,
    IReviewStore,
    IRewardPort,
)
from reviewsla.engine.assignment import Assignment, AssignmentService, NoCapacity
from reviewsla.engine.compensation import CompensationGate
from reviewsla.engine.directory import ReviewerDirectory, record_response, release_slot
from reviewsla.engine.dispatch import InlineDispatcher, ThreadPoolDispatcher
from reviewsla.engine.events import EventInbox, ReviewEvent, ReviewEventKind
from reviewsla.engine.outbox import Outbox
from reviewsla.engine.redistribution import RedistributionEngine
from reviewsla.engine.requests import RequestStore
from reviewsla.engine.sweeper import SLASweeper, SweepReport
from reviewsla.models.request import (
    HELD_STATUSES,
    CompensationRecord,
    RequestStatus,
    ReviewRequest,
)
from reviewsla.models.reviewer import ReviewerProfile
from reviewsla.models.sla import STREAK_MAX_HOURS, RecipientRole, band_for_elapsed
from reviewsla.persistence import create_persistence
from reviewsla.ports import create_ports

logger = logging.getLogger(__name__)


class ReviewSLAEngine:
    """Assignment, completion, sweep and run-loop operations.

    Usage:
        engine = ReviewSLAEngine(
            store=MemoryReviewStore(), compensation_log=MemoryCompensationLog(),
            notifications=..., rewards=..., reputation=..., clock=ManualClock(),
        )
        engine.register_reviewer(ReviewerProfile(reviewer_id="rev-1"))
        request = engine.submit_request("user-1")
        engine.sweep()
    """

    def __init__(
        self,
        *,
        store: IReviewStore,
        compensation_log: ICompensationLog,
        notifications: INotificationPort,
        rewards: IRewardPort,
        reputation: IReputationPort,
        clock: IClock | None = None,
        config: SLAConfig | None = None,
        dispatcher: IDispatcher | None = None,
        inbox: EventInbox | None = None,
    ) -> None:
        self.config = config or SLAConfig()
        self.clock = clock or SystemClock()
        self.inbox = inbox or EventInbox()
        self.outbox = Outbox(
            dispatcher=dispatcher or InlineDispatcher(),
            notifications=notifications,
            rewards=rewards,
            reputation=reputation,
        )
        self.directory = ReviewerDirectory(store)
        self.requests = RequestStore(store, self.clock)
        self.assignment = AssignmentService(
            directory=self.directory, requests=self.requests, outbox=self.outbox, clock=self.clock,
        )
        self.redistribution = RedistributionEngine(
            directory=self.directory, requests=self.requests, outbox=self.outbox,
            clock=self.clock, max_hops=self.config.max_escalation_hops,
        )
        self.gate = CompensationGate(log=compensation_log, outbox=self.outbox, clock=self.clock)
        self.sweeper = SLASweeper(
            requests=self.requests,
            assignment=self.assignment,
            redistribution=self.redistribution,
            gate=self.gate,
            outbox=self.outbox,
            clock=self.clock,
            config=self.config,
        )

    # ------------------------------------------------------------------
    # Reviewers
    # ------------------------------------------------------------------

    def register_reviewer(self, profile: ReviewerProfile) -> ReviewerProfile:
        return self.directory.register(profile)

    def list_reviewers(self) -> list[ReviewerProfile]:
        return self.directory.all_reviewers()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def submit_request(self, requester_id: str, subject_id: str = "",
                       request_id: str | None = None) -> ReviewRequest:
        """Create a request and try to assign it straight away.

        A request nobody can take yet stays ``pending`` and is retried by
        every sweep.
        """
        request = self.requests.submit(requester_id, subject_id=subject_id, request_id=request_id)
        try:
            outcome = self.assignment.assign(request)
        except VersionConflictError as exc:
            logger.debug("initial assignment of %s lost a race: %s", request.request_id, exc)
            return self.requests.get(request.request_id)
        if isinstance(outcome, NoCapacity):
            logger.info("request %s queued: %s", request.request_id, outcome.reason)
        return outcome.request

    def get_request(self, request_id: str) -> ReviewRequest:
        return self.requests.get(request_id)

    def compensations_for(self, request_id: str) -> list[CompensationRecord]:
        return self.gate.records_for(request_id)

    def start_review(self, request_id: str, reviewer_id: str) -> ReviewRequest:
        request = self.requests.get(request_id)
        self._check_holder(request, reviewer_id, RequestStatus.IN_REVIEW)
        if request.status != RequestStatus.ASSIGNED:
            raise InvalidTransitionError(request_id, request.status.value, RequestStatus.IN_REVIEW.value)
        saved, _ = self.requests.commit([RequestStore.transition(request, RequestStatus.IN_REVIEW)])
        return saved[0]

    def complete_request(self, request_id: str, reviewer_id: str) -> ReviewRequest:
        """Close a request on behalf of its assigned reviewer.

        The request transition, the capacity release and the reviewer's
        statistics are one commit; if a sweep changed the request first,
        VersionConflictError propagates and the caller may retry.
        """
        request = self.requests.get(request_id)
        self._check_holder(request, reviewer_id, RequestStatus.COMPLETED)
        reviewer = self.directory.get(reviewer_id)

        now = self.clock.now()
        response_hours = request.held_hours(now)
        changed = RequestStore.transition(
            request, RequestStatus.COMPLETED, completed_at=now, response_hours=response_hours,
        )
        updated_reviewer = record_response(release_slot(reviewer), response_hours, now)
        saved_requests, _ = self.requests.commit([changed], [updated_reviewer])
        saved = saved_requests[0]

        band = band_for_elapsed(response_hours)
        logger.info(
            "request %s completed by %s in %.1fh (%s)", request_id, reviewer_id, response_hours, band.value,
        )
        if response_hours <= STREAK_MAX_HOURS:
            self.outbox.reward(reviewer_id, f"sla_{band.value}")
        else:
            self.outbox.penalize(reviewer_id, f"sla_{band.value}")
        if band.policy.reward > 0:
            self.outbox.grant(reviewer_id, "sla_reward", band.policy.reward, f"{request_id}:sla_reward")
        self.outbox.notify(
            "review_completed", RecipientRole.REQUESTER,
            request_id=request_id, user_id=saved.requester_id, band=band.value,
            response_hours=round(response_hours, 2),
        )
        return saved

    @staticmethod
    def _check_holder(request: ReviewRequest, reviewer_id: str, target: RequestStatus) -> None:
        if request.status not in HELD_STATUSES:
            raise InvalidTransitionError(request.request_id, request.status.value, target.value)
        if request.assigned_reviewer_id != reviewer_id:
            raise ReviewerMismatchError(
                f"Request {request.request_id} is assigned to "
                f"{request.assigned_reviewer_id!r}, not {reviewer_id!r}"
            )

    # ------------------------------------------------------------------
    # Events and sweeping
    # ------------------------------------------------------------------

    def submit_event(self, event: ReviewEvent) -> None:
        if event.received_at is None:
            event = event.model_copy(update={"received_at": self.clock.now()})
        self.inbox.put(event)

    def process_events(self) -> int:
        """Apply queued reviewer events; failures are logged per event."""
        applied = 0
        for event in self.inbox.drain():
            try:
                if event.kind == ReviewEventKind.STARTED:
                    self.start_review(event.request_id, event.reviewer_id)
                else:
                    self.complete_request(event.request_id, event.reviewer_id)
                applied += 1
            except ReviewSLAError as exc:
                logger.warning("dropped %s for %s: %s", event.kind.value, event.request_id, exc)
        return applied

    def sweep(self) -> SweepReport:
        return self.sweeper.tick()

    async def run(self, stop: Optional[asyncio.Event] = None) -> None:
        """Drain events and sweep every ``sweep_interval_seconds`` until ``stop`` is set."""
        stop = stop or asyncio.Event()
        interval = self.config.sweep_interval_seconds
        logger.info("sweeper started (interval=%ss, max hops=%d)", interval, self.config.max_escalation_hops)
        while not stop.is_set():
            try:
                await asyncio.to_thread(self.process_events)
                await asyncio.to_thread(self.sweeper.tick)
            except Exception:
                logger.exception("sweep failed; retrying next interval")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("sweeper stopped")

    def close(self) -> None:
        self.outbox.shutdown()


def build_engine(settings: AppSettings | None = None, clock: IClock | None = None) -> ReviewSLAEngine:
    """Create a wired-up engine from application settings."""
    if settings is None:
        settings = AppSettings()

    store, compensation_log = create_persistence(settings)
    notifications, rewards, reputation = create_ports(settings)
    dispatcher: IDispatcher
    if settings.sla.dispatcher == "thread":
        dispatcher = ThreadPoolDispatcher(max_workers=settings.sla.dispatch_workers)
    else:
        dispatcher = InlineDispatcher()

    return ReviewSLAEngine(
        store=store,
        compensation_log=compensation_log,
        notifications=notifications,
        rewards=rewards,
        reputation=reputation,
        clock=clock,
        config=settings.sla,
        dispatcher=dispatcher,
    )
