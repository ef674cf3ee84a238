"""Outbox — the engine's only way out to the notification, economy and reputation ports."""

from __future__ import annotations

from typing import Any

from reviewsla.core.protocols import IDispatcher, INotificationPort, IReputationPort, IRewardPort
from reviewsla.models.sla import RecipientRole


class Outbox:
    """Wraps the outbound ports behind a dispatcher.

    Callers only use it after their commit has succeeded, so nothing is
    announced for a transition that lost an optimistic-concurrency race.
    """

    def __init__(
        self,
        *,
        dispatcher: IDispatcher,
        notifications: INotificationPort,
        rewards: IRewardPort,
        reputation: IReputationPort,
    ) -> None:
        self._dispatcher = dispatcher
        self._notifications = notifications
        self._rewards = rewards
        self._reputation = reputation

    def notify(self, template_id: str, role: RecipientRole, **payload: Any) -> None:
        self._dispatcher.submit(
            f"notify {template_id} -> {role.value}",
            self._notifications.notify, template_id, role.value, payload,
        )

    def grant(self, user_id: str, kind: str, amount: int, idempotency_key: str) -> None:
        self._dispatcher.submit(
            f"grant {kind} x{amount} to {user_id} ({idempotency_key})",
            self._rewards.grant_compensation, user_id, kind, amount, idempotency_key,
        )

    def penalize(self, reviewer_id: str, reason: str) -> None:
        self._dispatcher.submit(
            f"penalize {reviewer_id} ({reason})",
            self._reputation.penalize_reviewer, reviewer_id, reason,
        )

    def reward(self, reviewer_id: str, reason: str) -> None:
        self._dispatcher.submit(
            f"reward {reviewer_id} ({reason})",
            self._reputation.reward_reviewer, reviewer_id, reason,
        )

    def shutdown(self) -> None:
        self._dispatcher.shutdown()
