"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class SLAConfig(BaseSettings):
    """Sweep cadence, hop bound and time budgets."""

    model_config = {"env_prefix": "REVIEWSLA_SLA_"}

    sweep_interval_seconds: int = 300  # 5 minutes
    max_escalation_hops: int = 3
    redistribution_hours: float = 48.0
    pending_max_wait_hours: float = 12.0
    dispatcher: Literal["inline", "thread"] = "thread"
    dispatch_workers: int = 4
    run_sweeper: bool = True


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "REVIEWSLA_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis compensation log configuration."""

    model_config = {"env_prefix": "REVIEWSLA_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "reviewsla:comp"


class SQSConfig(BaseSettings):
    """Outbound port queues (notification, economy, reputation)."""

    model_config = {"env_prefix": "REVIEWSLA_SQS_"}

    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    notification_queue_url: str = ""
    reward_queue_url: str = ""
    reputation_queue_url: str = ""


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "REVIEWSLA_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    backend: Literal["memory", "dynamodb"] = "memory"
    compensation_log: Literal["memory", "redis", "dynamodb"] = "memory"
    ports: Literal["memory", "sqs"] = "memory"

    sla: SLAConfig = SLAConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
    sqs: SQSConfig = SQSConfig()
