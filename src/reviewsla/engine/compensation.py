"""Compensation gate — each threshold compensation fires at most once per request."""

from __future__ import annotations

import logging

from reviewsla.core.protocols import IClock, ICompensationLog
from reviewsla.core.types import JsonDict
from reviewsla.engine.outbox import Outbox
from reviewsla.models.request import CompensationRecord, ReviewRequest
from reviewsla.models.sla import CompensationTier, RecipientRole

logger = logging.getLogger(__name__)


class CompensationGate:
    """Insert-if-absent on (request_id, threshold_hours), then the reward call.

    Only the caller whose insert succeeds reaches the reward port, so two
    sweeps racing on the same request produce one grant.
    """

    def __init__(self, *, log: ICompensationLog, outbox: Outbox, clock: IClock) -> None:
        self._log = log
        self._outbox = outbox
        self._clock = clock

    def try_grant(self, request_id: str, threshold_hours: int, payload: JsonDict) -> bool:
        """Record and issue one compensation.

        ``payload`` must carry ``user_id``, ``kind`` and ``amount``; an
        ``automatic`` of False queues the compensation for manual approval
        instead of calling the reward port.
        """
        record = CompensationRecord(
            request_id=request_id,
            threshold_hours=threshold_hours,
            user_id=payload["user_id"],
            kind=payload["kind"],
            amount=payload["amount"],
            manual=not payload.get("automatic", True),
            granted_at=self._clock.now(),
            details={k: v for k, v in payload.items() if k not in ("user_id", "kind", "amount")},
        )
        if not self._log.insert_if_absent(record):
            logger.debug("compensation %s already recorded", record.idempotency_key)
            return False

        if record.manual:
            self._outbox.notify(
                "manual_compensation_queued", RecipientRole.ADMIN,
                request_id=request_id, user_id=record.user_id, kind=record.kind,
                amount=record.amount, idempotency_key=record.idempotency_key,
            )
        else:
            self._outbox.grant(record.user_id, record.kind, record.amount, record.idempotency_key)
        self._outbox.notify(
            "compensation_granted", RecipientRole.REQUESTER,
            request_id=request_id, user_id=record.user_id, kind=record.kind,
            amount=record.amount, threshold_hours=threshold_hours, pending_approval=record.manual,
        )
        logger.info("compensation %s granted (%s x%d)", record.idempotency_key, record.kind, record.amount)
        return True

    def grant_tier(self, request: ReviewRequest, tier: CompensationTier) -> bool:
        return self.try_grant(
            request.request_id,
            tier.threshold_hours,
            {
                "user_id": request.requester_id,
                "kind": tier.kind.value,
                "amount": tier.amount,
                "unit": tier.unit,
                "automatic": tier.automatic,
            },
        )

    def records_for(self, request_id: str) -> list[CompensationRecord]:
        return self._log.list_for_request(request_id)
