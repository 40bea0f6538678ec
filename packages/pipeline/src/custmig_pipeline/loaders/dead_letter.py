"""
loaders/dead_letter.py — Append-only sinks for records that exhausted retries.

Each entry holds the original record, the last error, the attempt count and a
timestamp. There is no replay: operators read the sink out of band.

Dead-letter file: ``settings.dead_letter_path`` (one JSON object per line)

Usage:
    from custmig_pipeline.loaders.dead_letter import JsonLinesDeadLetterSink

    sink = JsonLinesDeadLetterSink("./data/dead_letters.jsonl")
    sink.publish(DeadLetter.from_record(doc, error_message="...", attempt_count=3,
                                        failure_kind="persistence"))
    for entry in sink.read_all():
        print(entry.source_id, entry.error_message)

    summarize_dead_letters(sink.read_all())   # polars frame, one row per failure kind
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

import polars as pl
import structlog
from filelock import FileLock

from custmig_shared.models import DeadLetter

log = structlog.get_logger(__name__)


class DeadLetterSink(ABC):
    """Destination of dead-lettered records."""

    def publish(self, entry: DeadLetter) -> None:
        self._append(entry)
        log.error(
            "record_dead_lettered",
            source_id=entry.source_id,
            failure_kind=entry.failure_kind,
            attempts=entry.attempt_count,
            error=entry.error_message,
        )

    @abstractmethod
    def _append(self, entry: DeadLetter) -> None:
        ...

    @abstractmethod
    def read_all(self) -> list[DeadLetter]:
        ...


class MemoryDeadLetterSink(DeadLetterSink):
    """Keeps entries in process memory. Used by tests and dry runs."""

    def __init__(self) -> None:
        self.entries: list[DeadLetter] = []

    def _append(self, entry: DeadLetter) -> None:
        self.entries.append(entry)

    def read_all(self) -> list[DeadLetter]:
        return list(self.entries)


class JsonLinesDeadLetterSink(DeadLetterSink):
    """Appends entries to a JSON-lines file.

    Uses a file lock so concurrent migration processes don't interleave lines.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = FileLock(str(self._path) + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    def _append(self, entry: DeadLetter) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(entry.model_dump_json() + "\n")

    def read_all(self) -> list[DeadLetter]:
        if not self._path.exists():
            return []
        with self._lock:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        return [DeadLetter.model_validate_json(line) for line in lines if line.strip()]


def summarize_dead_letters(entries: list[DeadLetter]) -> pl.DataFrame:
    """
    Aggregate dead letters per failure kind.

    Returns:
        DataFrame with columns failure_kind, records, max_attempts, last_seen,
        sample_error; one row per kind, most frequent first. Empty input
        yields an empty frame with the same columns.
    """
    df = pl.DataFrame(
        {
            "failure_kind": [e.failure_kind for e in entries],
            "attempt_count": [e.attempt_count for e in entries],
            "timestamp": [e.timestamp for e in entries],
            "error_message": [e.error_message for e in entries],
        },
        schema={
            "failure_kind": pl.String,
            "attempt_count": pl.Int64,
            "timestamp": pl.Datetime(time_zone="UTC"),
            "error_message": pl.String,
        },
    )
    return (
        df.sort("timestamp", maintain_order=True)
        .group_by("failure_kind")
        .agg(
            pl.len().alias("records"),
            pl.col("attempt_count").max().alias("max_attempts"),
            pl.col("timestamp").max().alias("last_seen"),
            pl.col("error_message").last().alias("sample_error"),
        )
        .sort(["records", "failure_kind"], descending=[True, False])
    )
