"""Create the ReviewSLA DynamoDB tables and seed a sample reviewer pool.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
from decimal import Decimal
from typing import Any

import boto3

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "reviewsla-requests"},
    {"name": "reviewsla-reviewers"},
    {"name": "reviewsla-compensations"},
]

SAMPLE_REVIEWERS: list[dict[str, Any]] = [
    {
        "reviewer_id": "rev-alice", "display_name": "Alice",
        "max_concurrent": 5, "timezone": "America/New_York",
        "preferred_hours": [9, 10, 11, 14, 15], "specialties": ["contracts"],
        "sla_score": 95.0, "average_response_hours": 4.5, "current_streak": 6,
    },
    {
        "reviewer_id": "rev-bob", "display_name": "Bob",
        "max_concurrent": 3, "timezone": "Europe/London",
        "preferred_hours": [8, 9, 10], "specialties": ["medical"],
        "sla_score": 82.0, "average_response_hours": 12.0, "current_streak": 2,
    },
    {
        "reviewer_id": "rev-chen", "display_name": "Chen",
        "max_concurrent": 4, "timezone": "Asia/Singapore",
        "preferred_hours": [13, 14, 15, 16], "specialties": ["finance"],
        "sla_score": 74.0, "average_response_hours": 20.0, "current_streak": 0,
    },
]


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create all 3 DynamoDB tables. Skips if table already exists."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        print(f"  Created table {table_name}")


def _json_to_dynamodb(obj: Any) -> Any:
    """Convert floats to Decimal for DynamoDB."""
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _json_to_dynamodb(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_json_to_dynamodb(i) for i in obj]
    return obj


def seed_reviewers(ddb: Any, suffix: str = "") -> int:
    """Write the sample reviewers as version-1 profiles with no held work."""
    tbl = ddb.Table(f"reviewsla-reviewers{suffix}")
    with tbl.batch_writer() as batch:
        for reviewer in SAMPLE_REVIEWERS:
            item = {
                "PK": f"REVIEWER#{reviewer['reviewer_id']}", "SK": "PROFILE",
                "current": 0, "is_active": True, "auto_assign_enabled": True,
                "version": 1,
                **reviewer,
            }
            batch.put_item(Item=_json_to_dynamodb(item))
    print(f"  Seeded {len(SAMPLE_REVIEWERS)} reviewers")
    return len(SAMPLE_REVIEWERS)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DynamoDB tables for ReviewSLA")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--no-reviewers", action="store_true", help="Create tables only")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    if not args.no_reviewers:
        print("Seeding reviewers...")
        seed_reviewers(ddb, suffix=args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
