"""Recording port implementations for local development and testing.

No external calls: every call is kept in order for inspection and logged.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from reviewsla.core.types import JsonDict

logger = logging.getLogger(__name__)


class SentNotification(BaseModel):
    template_id: str
    recipient_role: str
    payload: JsonDict = Field(default_factory=dict)


class Grant(BaseModel):
    user_id: str
    kind: str
    amount: int
    idempotency_key: str


class RecordingNotificationPort:
    """INotificationPort that keeps every notification."""

    def __init__(self) -> None:
        self.sent: list[SentNotification] = []

    def notify(self, template_id: str, recipient_role: str, payload: JsonDict) -> None:
        logger.info("notify %s -> %s %s", template_id, recipient_role, payload)
        self.sent.append(SentNotification(template_id=template_id, recipient_role=recipient_role, payload=payload))

    def templates(self, recipient_role: str | None = None) -> list[str]:
        return [
            n.template_id for n in self.sent
            if recipient_role is None or n.recipient_role == recipient_role
        ]


class RecordingRewardPort:
    """IRewardPort that honours idempotency keys the way the economy service must."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.grants: list[Grant] = []
        self.calls = 0
        self._keys: set[str] = set()
        self._fail_with = fail_with

    def grant_compensation(self, user_id: str, kind: str, amount: int, idempotency_key: str) -> None:
        self.calls += 1
        if self._fail_with is not None:
            raise self._fail_with
        if idempotency_key in self._keys:
            logger.info("duplicate grant ignored key=%s", idempotency_key)
            return
        self._keys.add(idempotency_key)
        logger.info("grant %s %s x%d key=%s", user_id, kind, amount, idempotency_key)
        self.grants.append(Grant(user_id=user_id, kind=kind, amount=amount, idempotency_key=idempotency_key))


class RecordingReputationPort:
    """IReputationPort that keeps (action, reviewer_id, reason) tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, str]] = []

    def penalize_reviewer(self, reviewer_id: str, reason: str) -> None:
        logger.info("penalize %s reason=%s", reviewer_id, reason)
        self.events.append(("penalize", reviewer_id, reason))

    def reward_reviewer(self, reviewer_id: str, reason: str) -> None:
        logger.info("reward %s reason=%s", reviewer_id, reason)
        self.events.append(("reward", reviewer_id, reason))

    def penalties(self) -> list[tuple[str, str]]:
        return [(rid, reason) for action, rid, reason in self.events if action == "penalize"]
