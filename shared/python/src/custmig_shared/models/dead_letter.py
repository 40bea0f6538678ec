"""
models/dead_letter.py — Entry written to the dead-letter sink.

Operators consume these out of band; there is no replay mechanism.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeadLetter(BaseModel):
    """A source record that could not be migrated, with its last error."""

    original_record: dict[str, Any]
    error_message: str
    attempt_count: int
    failure_kind: str
    source_id: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_record(
        cls,
        record: dict[str, Any],
        *,
        error_message: str,
        attempt_count: int,
        failure_kind: str,
        source_id: str | None = None,
    ) -> "DeadLetter":
        """Build an entry, rendering BSON/datetime values in the record as strings."""
        safe_record = json.loads(json.dumps(record, default=str))
        return cls(
            original_record=safe_record,
            error_message=error_message,
            attempt_count=attempt_count,
            failure_kind=failure_kind,
            source_id=source_id,
        )
