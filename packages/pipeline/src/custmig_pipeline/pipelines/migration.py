"""
pipelines/migration.py — Customer migration: document store → relational target.

One run:
  1. open the target (one storage handle for the whole run)
  2. connectivity guard — abort before reading any record if the target is down
  3. stream source documents in arrival order, one at a time
  4. per record: transform + upsert under the retry supervisor
  5. reconciliation stats, one-line summary

Records are processed sequentially, so address deduplication never races
with itself. Runs are single-flight: a trigger that fires while a run is
still executing is skipped.

Usage:
    from custmig_pipeline.pipelines.migration import run
    report = await run()
    print(report.summary())

    # Operational tooling — migrate a single document by id
    pipeline = build_pipeline()
    outcome = await pipeline.migrate_record("65f0c3...")
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from custmig_pipeline.errors import ConnectivityError, PersistenceError, ValidationError
from custmig_pipeline.loaders.base import MigrationTarget, TargetSession
from custmig_pipeline.loaders.dead_letter import (
    DeadLetterSink,
    JsonLinesDeadLetterSink,
)
from custmig_pipeline.loaders.duckdb_target import DuckDBTarget
from custmig_pipeline.loaders.supabase_target import SupabaseTarget
from custmig_pipeline.pipelines.guard import DEFAULT_PING_TIMEOUT, ConnectivityGuard
from custmig_pipeline.pipelines.stats import StatsAggregator, StatsSummary
from custmig_pipeline.pipelines.supervisor import (
    AttemptResult,
    RecordOutcome,
    RecordState,
    RetrySupervisor,
)
from custmig_pipeline.sources.base import BaseSource, RawRecord
from custmig_pipeline.sources.jsonl import JsonLinesSource
from custmig_pipeline.sources.mongo import MongoSource
from custmig_pipeline.transforms.customers import (
    DEFAULT_FIELD_MAP,
    FIELD_MAPS,
    FieldMap,
    record_identifier,
    transform_record,
)
from custmig_pipeline.utils.logging import configure_logging, get_logger, run_context
from custmig_pipeline.utils.retry import RetryPolicy, SleepFn
from custmig_shared.config import Settings
from custmig_shared.config import settings as default_settings
from custmig_shared.constants import RunStatus

log = get_logger(__name__, pipeline="customer_migration")


@dataclass
class RunReport:
    """Summary of one migration run."""

    run_id: str
    status: RunStatus = "success"
    records_read: int = 0
    records_migrated: int = 0
    records_dead_lettered: int = 0
    records_retried: int = 0
    stats: StatsSummary | None = None
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    def add(self, outcome: RecordOutcome) -> None:
        if outcome.retried:
            self.records_retried += 1
        if outcome.state is RecordState.SUCCEEDED:
            self.records_migrated += 1
        else:
            self.records_dead_lettered += 1
            self.errors.append(f"{outcome.source_id}: {outcome.error}")

    def finalize_status(self) -> None:
        if self.status in ("aborted", "skipped"):
            return
        if self.records_dead_lettered == 0:
            self.status = "success"
        elif self.records_migrated > 0:
            self.status = "partial_failure"
        else:
            self.status = "failure"

    @property
    def ok(self) -> bool:
        return self.status in ("success", "skipped")

    def summary(self) -> str:
        if self.status in ("aborted", "skipped"):
            reason = self.errors[0] if self.errors else ""
            return f"Migration {self.status}" + (f": {reason}" if reason else "")
        text = (
            f"Migration {self.status}: {self.records_read} read, "
            f"{self.records_migrated} migrated, {self.records_dead_lettered} dead-lettered, "
            f"{self.records_retried} retried in {self.duration_ms} ms"
        )
        if self.stats is not None:
            text += f". {self.stats.describe()}"
        return text


class MigrationPipeline:
    """
    Wires a source, a target and a dead-letter sink into migration runs.

    Args:
        source:        Source-store adapter.
        target:        Target store; opened once per run.
        sink:          Dead-letter sink.
        policy:        Retry policy for each record.
        field_map:     Source field names.
        probe_timeout: Connectivity guard timeout in seconds.
        sleep:         Backoff sleep (tests substitute a recorder).
    """

    def __init__(
        self,
        source: BaseSource,
        target: MigrationTarget,
        sink: DeadLetterSink,
        *,
        policy: RetryPolicy | None = None,
        field_map: FieldMap = DEFAULT_FIELD_MAP,
        probe_timeout: float = DEFAULT_PING_TIMEOUT,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._source = source
        self._target = target
        self._sink = sink
        self._field_map = field_map
        self._probe_timeout = probe_timeout
        self._supervisor = RetrySupervisor(sink, policy, sleep=sleep)
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Full pass
    # ------------------------------------------------------------------

    async def run(self) -> RunReport:
        """
        Migrate every source record once.

        Returns:
            RunReport. status is "aborted" when the target was unreachable
            (no record read) and "skipped" when a run was already executing.

        Raises:
            Any exception from the source stream itself, after logging it.
        """
        run_id = str(uuid.uuid4())
        if self._lock.locked():
            log.warning("migration_skipped", run_id=run_id, reason="run_in_progress")
            return RunReport(
                run_id=run_id,
                status="skipped",
                errors=["a previous run is still executing"],
            )

        async with self._lock:
            with run_context(run_id=run_id):
                return await self._run(run_id)

    async def _run(self, run_id: str) -> RunReport:
        report = RunReport(run_id=run_id)
        run_log = log.bind(source=self._source.name, target=self._target.name)
        run_log.info("migration_start")
        t0 = time.monotonic()

        try:
            async with self._target.open() as session:
                await self._require_ready(session)

                async with aclosing(self._source.stream()) as records:
                    async for raw in records:
                        report.records_read += 1
                        outcome = await self._supervise(session, raw)
                        report.add(outcome)

                report.stats = await StatsAggregator(session).summarize()

        except ConnectivityError as exc:
            report.status = "aborted"
            report.errors.append(str(exc))
            run_log.error("migration_aborted", error=str(exc))
        except Exception as exc:
            run_log.error(
                "migration_failed",
                error=str(exc),
                records_read=report.records_read,
                duration_ms=int((time.monotonic() - t0) * 1000),
                exc_info=True,
            )
            raise
        finally:
            await self._source.close()

        report.duration_ms = int((time.monotonic() - t0) * 1000)
        report.finalize_status()
        run_log.info(
            "migration_complete",
            status=report.status,
            records_read=report.records_read,
            records_migrated=report.records_migrated,
            records_dead_lettered=report.records_dead_lettered,
            records_retried=report.records_retried,
            duration_ms=report.duration_ms,
        )
        run_log.info("migration_summary", summary=report.summary())
        return report

    # ------------------------------------------------------------------
    # Single-record trigger
    # ------------------------------------------------------------------

    async def migrate_document(self, raw: RawRecord) -> RecordOutcome:
        """
        Migrate one raw document supplied by the caller.

        Raises:
            ConnectivityError: when the target is unreachable.
        """
        async with self._lock:
            async with self._target.open() as session:
                await self._require_ready(session)
                return await self._supervise(session, raw)

    async def migrate_record(self, source_id: str) -> RecordOutcome | None:
        """
        Fetch one document by id from the source and migrate it.

        Returns:
            The outcome, or None when the source has no such document.

        Raises:
            ConnectivityError: when the target is unreachable (source untouched).
        """
        async with self._lock:
            try:
                async with self._target.open() as session:
                    await self._require_ready(session)
                    raw = await self._source.get(source_id)
                    if raw is None:
                        log.warning("record_not_found", source_id=source_id)
                        return None
                    return await self._supervise(session, raw)
            finally:
                await self._source.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _require_ready(self, session: TargetSession) -> None:
        guard = ConnectivityGuard(session, timeout=self._probe_timeout)
        if not await guard.check_ready():
            await guard.settle()
            raise ConnectivityError(f"target {self._target.name!r} is not reachable")

    async def _supervise(self, session: TargetSession, raw: RawRecord) -> RecordOutcome:
        source_id = record_identifier(raw, self._field_map)

        async def attempt() -> AttemptResult:
            return await self._migrate_once(session, raw)

        return await self._supervisor.supervise(raw, attempt, source_id=source_id)

    async def _migrate_once(self, session: TargetSession, raw: RawRecord) -> AttemptResult:
        try:
            customer = transform_record(raw, self._field_map)
        except ValidationError as exc:
            return AttemptResult.invalid(str(exc))

        try:
            customer_id = await asyncio.to_thread(session.upsert_customer, customer)
        except PersistenceError as exc:
            return AttemptResult.failed(str(exc))
        return AttemptResult.ok(customer_id)


# ---------------------------------------------------------------------------
# Wiring from settings
# ---------------------------------------------------------------------------


def build_source(config: Settings) -> BaseSource:
    if config.source_kind == "jsonl":
        return JsonLinesSource(config.source_file)
    return MongoSource(config.mongo_uri, config.mongo_database, config.mongo_collection)


def build_target(config: Settings) -> MigrationTarget:
    if config.target_kind == "supabase":
        return SupabaseTarget(config.supabase_url, config.supabase_service_key)
    return DuckDBTarget(config.duckdb_path)


def build_pipeline(config: Settings | None = None, **overrides: Any) -> MigrationPipeline:
    """
    Build a MigrationPipeline from settings.

    Keyword overrides (source=, target=, sink=, policy=, ...) replace the
    configured collaborators.
    """
    config = config or default_settings
    kwargs: dict[str, Any] = {
        "source": build_source(config),
        "target": build_target(config),
        "sink": JsonLinesDeadLetterSink(config.dead_letter_path),
        "policy": RetryPolicy.from_settings(config),
        "field_map": FIELD_MAPS[config.source_field_map],
        "probe_timeout": config.probe_timeout,
    }
    kwargs.update(overrides)
    return MigrationPipeline(**kwargs)


async def run(config: Settings | None = None, **overrides: Any) -> RunReport:
    """
    Run one full migration pass with the configured collaborators.

    Args:
        config:      Settings (default: the module singleton).
        **overrides: Passed to build_pipeline().

    Returns:
        RunReport.
    """
    configure_logging()
    pipeline = build_pipeline(config, **overrides)
    return await pipeline.run()
