"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from reviewsla.core.config import AppSettings
from reviewsla.persistence.dynamodb_backend import DynamoDBCompensationLog, DynamoDBReviewStore
from reviewsla.persistence.memory_backend import MemoryCompensationLog, MemoryReviewStore
from reviewsla.persistence.redis_backend import RedisCompensationLog


def create_persistence(settings: AppSettings | None = None):
    """Create wired-up persistence backends from application settings.

    Returns:
        Tuple of (review_store, compensation_log).
    """
    if settings is None:
        settings = AppSettings()
    ddb = settings.dynamodb

    if settings.backend == "dynamodb":
        store = DynamoDBReviewStore(
            table_suffix=ddb.table_suffix, region=ddb.region, endpoint_url=ddb.endpoint_url,
        )
    else:
        store = MemoryReviewStore()

    if settings.compensation_log == "redis":
        compensation_log = RedisCompensationLog(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            key_prefix=settings.redis.key_prefix,
        )
    elif settings.compensation_log == "dynamodb":
        compensation_log = DynamoDBCompensationLog(
            table_suffix=ddb.table_suffix, region=ddb.region, endpoint_url=ddb.endpoint_url,
        )
    else:
        compensation_log = MemoryCompensationLog()

    return store, compensation_log
