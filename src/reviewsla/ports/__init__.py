"""Outbound port adapters: SQS publishers for production, recorders for dev and tests."""

from __future__ import annotations

from reviewsla.core.config import AppSettings
from reviewsla.ports.memory import (
    RecordingNotificationPort,
    RecordingReputationPort,
    RecordingRewardPort,
)
from reviewsla.ports.sqs import SQSNotificationPort, SQSReputationPort, SQSRewardPort


def create_ports(settings: AppSettings | None = None):
    """Create the outbound ports from application settings.

    Returns:
        Tuple of (notifications, rewards, reputation).
    """
    if settings is None:
        settings = AppSettings()

    if settings.ports != "sqs":
        return RecordingNotificationPort(), RecordingRewardPort(), RecordingReputationPort()

    sqs = settings.sqs
    return (
        SQSNotificationPort(sqs.notification_queue_url, region=sqs.region, endpoint_url=sqs.endpoint_url),
        SQSRewardPort(sqs.reward_queue_url, region=sqs.region, endpoint_url=sqs.endpoint_url),
        SQSReputationPort(sqs.reputation_queue_url, region=sqs.region, endpoint_url=sqs.endpoint_url),
    )
