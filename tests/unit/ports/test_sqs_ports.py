"""Unit tests for the SQS port publishers using moto."""

from __future__ import annotations

import json
from unittest.mock import patch

import boto3
import pytest
from botocore.exceptions import EndpointConnectionError
from moto import mock_aws

from reviewsla.core.config import AppSettings, SQSConfig
from reviewsla.core.exceptions import NotificationError, RewardError
from reviewsla.ports import create_ports
from reviewsla.ports.memory import RecordingNotificationPort
from reviewsla.ports.sqs import SQSNotificationPort, SQSReputationPort, SQSRewardPort

REGION = "us-east-1"


@pytest.fixture
def sqs():
    with mock_aws():
        yield boto3.client("sqs", region_name=REGION)


@pytest.fixture
def queue_url(sqs):
    return sqs.create_queue(QueueName="reviewsla-test")["QueueUrl"]


def _receive(sqs, queue_url) -> list[dict]:
    resp = sqs.receive_message(
        QueueUrl=queue_url, MaxNumberOfMessages=10, MessageAttributeNames=["All"],
    )
    return resp.get("Messages", [])


class TestNotificationPort:
    def test_publishes_envelope(self, sqs, queue_url):
        SQSNotificationPort(queue_url, region=REGION).notify(
            "review_assigned", "reviewer", {"request_id": "r1", "reviewer_id": "a"},
        )
        (message,) = _receive(sqs, queue_url)
        envelope = json.loads(message["Body"])
        assert envelope["type"] == "notification"
        assert envelope["body"]["template_id"] == "review_assigned"
        assert envelope["body"]["payload"] == {"request_id": "r1", "reviewer_id": "a"}
        assert message["MessageAttributes"]["type"]["StringValue"] == "notification"

    def test_missing_queue_raises_notification_error(self, sqs):
        port = SQSNotificationPort(
            f"https://sqs.{REGION}.amazonaws.com/123456789012/missing", region=REGION,
        )
        with pytest.raises(NotificationError):
            port.notify("review_assigned", "reviewer", {})

    def test_connection_error_raises_notification_error(self, queue_url):
        port = SQSNotificationPort(queue_url, region=REGION)
        with patch.object(port, "_client") as client:
            client.send_message.side_effect = EndpointConnectionError(endpoint_url=queue_url)
            with pytest.raises(NotificationError):
                port.notify("review_assigned", "reviewer", {})


class TestRewardPort:
    def test_carries_idempotency_key(self, sqs, queue_url):
        SQSRewardPort(queue_url, region=REGION).grant_compensation("u1", "currency", 25, "r1:48h")
        (message,) = _receive(sqs, queue_url)
        body = json.loads(message["Body"])["body"]
        assert body == {"user_id": "u1", "kind": "currency", "amount": 25, "idempotency_key": "r1:48h"}
        assert message["MessageAttributes"]["idempotency_key"]["StringValue"] == "r1:48h"

    def test_missing_queue_raises_reward_error(self, sqs):
        port = SQSRewardPort(f"https://sqs.{REGION}.amazonaws.com/123456789012/missing", region=REGION)
        with pytest.raises(RewardError):
            port.grant_compensation("u1", "currency", 25, "r1:48h")


class TestReputationPort:
    def test_penalize_and_reward(self, sqs, queue_url):
        port = SQSReputationPort(queue_url, region=REGION)
        port.penalize_reviewer("a", "sla_timeout")
        port.reward_reviewer("b", "sla_optimal")
        types = sorted(json.loads(m["Body"])["type"] for m in _receive(sqs, queue_url))
        assert types == ["penalize_reviewer", "reward_reviewer"]


class TestCreatePorts:
    def test_memory_ports_by_default(self):
        notifications, _, _ = create_ports(AppSettings())
        assert isinstance(notifications, RecordingNotificationPort)

    def test_sqs_ports(self, queue_url):
        settings = AppSettings(
            ports="sqs",
            sqs=SQSConfig(
                region=REGION,
                notification_queue_url=queue_url,
                reward_queue_url=queue_url,
                reputation_queue_url=queue_url,
            ),
        )
        notifications, rewards, reputation = create_ports(settings)
        assert isinstance(notifications, SQSNotificationPort)
        assert isinstance(rewards, SQSRewardPort)
        assert isinstance(reputation, SQSReputationPort)
