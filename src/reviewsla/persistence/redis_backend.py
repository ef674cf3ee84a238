"""Redis backend implementing ICompensationLog with SET NX."""

from __future__ import annotations

from typing import Optional

import redis

from reviewsla.core.exceptions import CompensationLogError
from reviewsla.models.request import CompensationRecord


class RedisCompensationLog:
    """Production ICompensationLog backed by Redis.

    Each record lives at ``{prefix}:{request_id}:{threshold_hours}``; the
    first ``SET NX`` wins and later attempts are rejected.
    """

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0,
                 key_prefix: str = "reviewsla:comp") -> None:
        self._host = host
        self._port = port
        self._db = db
        self._prefix = key_prefix
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def _key(self, request_id: str, threshold_hours: int) -> str:
        return f"{self._prefix}:{request_id}:{threshold_hours}"

    def insert_if_absent(self, record: CompensationRecord) -> bool:
        key = self._key(record.request_id, record.threshold_hours)
        try:
            return bool(self._client.set(key, record.model_dump_json(), nx=True))
        except Exception as exc:
            raise CompensationLogError(f"Redis SET NX failed for key={key!r}: {exc}") from exc

    def get(self, request_id: str, threshold_hours: int) -> Optional[CompensationRecord]:
        key = self._key(request_id, threshold_hours)
        try:
            raw = self._client.get(key)
        except Exception as exc:
            raise CompensationLogError(f"Redis GET failed for key={key!r}: {exc}") from exc
        return CompensationRecord.model_validate_json(raw) if raw else None

    def list_for_request(self, request_id: str) -> list[CompensationRecord]:
        pattern = f"{self._prefix}:{request_id}:*"
        try:
            raw = [self._client.get(k) for k in self._client.scan_iter(match=pattern)]
        except Exception as exc:
            raise CompensationLogError(f"Redis SCAN failed for pattern={pattern!r}: {exc}") from exc
        records = [CompensationRecord.model_validate_json(r) for r in raw if r]
        return sorted(records, key=lambda r: r.threshold_hours)
