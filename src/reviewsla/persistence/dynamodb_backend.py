"""DynamoDB backends implementing IReviewStore and ICompensationLog.

Table layout (PK/SK schema, one table per record type):
    reviewsla-requests       PK=REQUEST#{id}    SK=STATE
    reviewsla-reviewers      PK=REVIEWER#{id}   SK=PROFILE
    reviewsla-compensations  PK=REQUEST#{id}    SK=THRESHOLD#{hours:04d}
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from reviewsla.core.exceptions import CompensationLogError, StoreError, VersionConflictError
from reviewsla.models.request import OPEN_STATUSES, CompensationRecord, RequestStatus, ReviewRequest
from reviewsla.models.reviewer import ReviewerProfile

logger = logging.getLogger(__name__)

REQUESTS_TABLE = "reviewsla-requests"
REVIEWERS_TABLE = "reviewsla-reviewers"
COMPENSATIONS_TABLE = "reviewsla-compensations"


def _decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    out: dict[str, Any] = {}
    for k, v in item.items():
        if isinstance(v, Decimal):
            out[k] = int(v) if v == int(v) else float(v)
        elif isinstance(v, dict):
            out[k] = _decode_decimals(v)
        elif isinstance(v, list):
            out[k] = [
                _decode_decimals(i) if isinstance(i, dict)
                else (int(i) if isinstance(i, Decimal) and i == int(i) else float(i) if isinstance(i, Decimal) else i)
                for i in v
            ]
        else:
            out[k] = v
    return out


def _to_dynamodb(obj: Any) -> Any:
    """Convert JSON-mode floats to Decimal for DynamoDB."""
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _to_dynamodb(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_dynamodb(i) for i in obj]
    return obj


def _strip_keys(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in item.items() if k not in ("PK", "SK")}


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class DynamoDBReviewStore:
    """Production IReviewStore; commits use TransactWriteItems with version conditions."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._client = self._ddb.meta.client
        self._serializer = TypeSerializer()

    def _table_name(self, base: str) -> str:
        return f"{base}{self._table_suffix}"

    def _table(self, base: str):
        return self._ddb.Table(self._table_name(base))

    def _get_item(self, table_base: str, pk: str, sk: str) -> dict[str, Any] | None:
        try:
            resp = self._table(table_base).get_item(Key={"PK": pk, "SK": sk})
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB get failed for {pk!r}: {exc}") from exc
        item = resp.get("Item")
        return _strip_keys(_decode_decimals(item)) if item else None

    def _scan(self, table_base: str, **kwargs: Any) -> list[dict[str, Any]]:
        tbl = self._table(table_base)
        items: list[dict[str, Any]] = []
        try:
            resp = tbl.scan(**kwargs)
            items.extend(resp.get("Items", []))
            while "LastEvaluatedKey" in resp:
                resp = tbl.scan(ExclusiveStartKey=resp["LastEvaluatedKey"], **kwargs)
                items.extend(resp.get("Items", []))
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB scan of {table_base!r} failed: {exc}") from exc
        return [_strip_keys(_decode_decimals(i)) for i in items]

    # ---- IReviewStore methods ----

    def get_request(self, request_id: str) -> Optional[ReviewRequest]:
        item = self._get_item(REQUESTS_TABLE, f"REQUEST#{request_id}", "STATE")
        return ReviewRequest.model_validate(item) if item else None

    def list_open_requests(self) -> list[ReviewRequest]:
        statuses = [s.value for s in OPEN_STATUSES] + [RequestStatus.TIMED_OUT.value]
        items = self._scan(REQUESTS_TABLE, FilterExpression=Attr("status").is_in(statuses))
        requests = [r for r in (ReviewRequest.model_validate(i) for i in items) if r.needs_sweep]
        return sorted(requests, key=lambda r: (r.created_at, r.request_id))

    def get_reviewer(self, reviewer_id: str) -> Optional[ReviewerProfile]:
        item = self._get_item(REVIEWERS_TABLE, f"REVIEWER#{reviewer_id}", "PROFILE")
        return ReviewerProfile.model_validate(item) if item else None

    def list_reviewers(self) -> list[ReviewerProfile]:
        return [ReviewerProfile.model_validate(i) for i in self._scan(REVIEWERS_TABLE)]

    def commit(
        self,
        requests: list[ReviewRequest] | None = None,
        reviewers: list[ReviewerProfile] | None = None,
    ) -> tuple[list[ReviewRequest], list[ReviewerProfile]]:
        requests = requests or []
        reviewers = reviewers or []
        saved_requests = [r.model_copy(update={"version": r.version + 1}, deep=True) for r in requests]
        saved_reviewers = [r.model_copy(update={"version": r.version + 1}, deep=True) for r in reviewers]

        # (kind, id, expected version) per transact item, for conflict reporting
        checks: list[tuple[str, str, int]] = []
        items: list[dict[str, Any]] = []
        for old, new in zip(requests, saved_requests):
            items.append(self._put(REQUESTS_TABLE, f"REQUEST#{new.request_id}", "STATE", new, old.version))
            checks.append(("request", new.request_id, old.version))
        for old, new in zip(reviewers, saved_reviewers):
            items.append(self._put(REVIEWERS_TABLE, f"REVIEWER#{new.reviewer_id}", "PROFILE", new, old.version))
            checks.append(("reviewer", new.reviewer_id, old.version))

        if not items:
            return saved_requests, saved_reviewers

        try:
            self._client.transact_write_items(TransactItems=items)
        except ClientError as exc:
            if _error_code(exc) in ("TransactionCanceledException", "ConditionalCheckFailedException"):
                reasons = exc.response.get("CancellationReasons", [])
                idx = next(
                    (i for i, r in enumerate(reasons) if r.get("Code") == "ConditionalCheckFailed"),
                    0,
                )
                kind, record_id, expected = checks[min(idx, len(checks) - 1)]
                raise VersionConflictError(kind, record_id, expected) from exc
            raise StoreError(f"DynamoDB commit failed: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreError(f"DynamoDB commit failed: {exc}") from exc
        return saved_requests, saved_reviewers

    def _put(self, table_base: str, pk: str, sk: str, record: Any, expected_version: int) -> dict[str, Any]:
        body = _to_dynamodb(record.model_dump(mode="json"))
        body.update({"PK": pk, "SK": sk})
        put: dict[str, Any] = {
            "TableName": self._table_name(table_base),
            "Item": {k: self._serializer.serialize(v) for k, v in body.items()},
        }
        if expected_version == 0:
            put["ConditionExpression"] = "attribute_not_exists(PK)"
        else:
            put["ConditionExpression"] = "#v = :expected"
            put["ExpressionAttributeNames"] = {"#v": "version"}
            put["ExpressionAttributeValues"] = {":expected": {"N": str(expected_version)}}
        return {"Put": put}


class DynamoDBCompensationLog:
    """Production ICompensationLog; insert-if-absent via a conditional put."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._table = self._ddb.Table(f"{COMPENSATIONS_TABLE}{table_suffix}")

    @staticmethod
    def _sk(threshold_hours: int) -> str:
        return f"THRESHOLD#{threshold_hours:04d}"

    def insert_if_absent(self, record: CompensationRecord) -> bool:
        item = _to_dynamodb(record.model_dump(mode="json"))
        item.update({"PK": f"REQUEST#{record.request_id}", "SK": self._sk(record.threshold_hours)})
        try:
            self._table.put_item(Item=item, ConditionExpression="attribute_not_exists(PK)")
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                return False
            raise CompensationLogError(
                f"DynamoDB insert failed for {record.idempotency_key!r}: {exc}"
            ) from exc
        except BotoCoreError as exc:
            raise CompensationLogError(
                f"DynamoDB insert failed for {record.idempotency_key!r}: {exc}"
            ) from exc
        return True

    def get(self, request_id: str, threshold_hours: int) -> Optional[CompensationRecord]:
        try:
            resp = self._table.get_item(Key={"PK": f"REQUEST#{request_id}", "SK": self._sk(threshold_hours)})
        except (ClientError, BotoCoreError) as exc:
            raise CompensationLogError(f"DynamoDB get failed for {request_id!r}: {exc}") from exc
        item = resp.get("Item")
        return CompensationRecord.model_validate(_strip_keys(_decode_decimals(item))) if item else None

    def list_for_request(self, request_id: str) -> list[CompensationRecord]:
        condition = Key("PK").eq(f"REQUEST#{request_id}")
        items: list[dict[str, Any]] = []
        try:
            resp = self._table.query(KeyConditionExpression=condition)
            items.extend(resp.get("Items", []))
            while "LastEvaluatedKey" in resp:
                resp = self._table.query(
                    KeyConditionExpression=condition, ExclusiveStartKey=resp["LastEvaluatedKey"],
                )
                items.extend(resp.get("Items", []))
        except (ClientError, BotoCoreError) as exc:
            raise CompensationLogError(f"DynamoDB query failed for {request_id!r}: {exc}") from exc
        return [CompensationRecord.model_validate(_strip_keys(_decode_decimals(i))) for i in items]
