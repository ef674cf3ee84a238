"""SQS publishers implementing the outbound ports.

Each port writes JSON messages to its own queue; the owning service
consumes them. This keeps every dependency one-directional: the engine
publishes and never waits for, or receives calls from, the consumer.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from reviewsla.core.exceptions import NotificationError, PortError, ReputationError, RewardError
from reviewsla.core.types import JsonDict


class _SQSPublisher:
    """Shared boto3 SQS client and JSON envelope."""

    error_cls: type[PortError] = PortError

    def __init__(self, queue_url: str, region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._queue_url = queue_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("sqs", **kwargs)

    def _publish(self, message_type: str, body: JsonDict,
                 dedup_key: str | None = None) -> None:
        envelope = {
            "type": message_type,
            "sent_at": datetime.now(timezone.utc).isoformat(),
            "body": body,
        }
        attributes: dict[str, Any] = {
            "type": {"DataType": "String", "StringValue": message_type},
        }
        if dedup_key:
            attributes["idempotency_key"] = {"DataType": "String", "StringValue": dedup_key}
        try:
            self._client.send_message(
                QueueUrl=self._queue_url,
                MessageBody=json.dumps(envelope, default=str),
                MessageAttributes=attributes,
            )
        except (ClientError, BotoCoreError) as exc:
            raise self.error_cls(f"SQS publish {message_type!r} failed: {exc}") from exc


class SQSNotificationPort(_SQSPublisher):
    """Production INotificationPort."""

    error_cls = NotificationError

    def notify(self, template_id: str, recipient_role: str, payload: JsonDict) -> None:
        self._publish(
            "notification",
            {"template_id": template_id, "recipient_role": recipient_role, "payload": payload},
        )


class SQSRewardPort(_SQSPublisher):
    """Production IRewardPort; the economy consumer deduplicates on the key."""

    error_cls = RewardError

    def grant_compensation(self, user_id: str, kind: str, amount: int, idempotency_key: str) -> None:
        self._publish(
            "grant_compensation",
            {"user_id": user_id, "kind": kind, "amount": amount, "idempotency_key": idempotency_key},
            dedup_key=idempotency_key,
        )


class SQSReputationPort(_SQSPublisher):
    """Production IReputationPort."""

    error_cls = ReputationError

    def penalize_reviewer(self, reviewer_id: str, reason: str) -> None:
        self._publish("penalize_reviewer", {"reviewer_id": reviewer_id, "reason": reason})

    def reward_reviewer(self, reviewer_id: str, reason: str) -> None:
        self._publish("reward_reviewer", {"reviewer_id": reviewer_id, "reason": reason})
