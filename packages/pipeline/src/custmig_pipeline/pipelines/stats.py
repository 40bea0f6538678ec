"""
pipelines/stats.py — Post-run reconciliation counts.

Statistics are advisory: a failed query is logged and reported as an error
string in the summary rather than failing the run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from custmig_pipeline.loaders.base import TargetSession
from custmig_shared.models import MigrationStats

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StatsSummary:
    """Either the counts or the reason they could not be read."""

    stats: MigrationStats | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.stats is not None

    def describe(self) -> str:
        if self.stats is not None:
            return self.stats.describe()
        return f"Error fetching migration stats: {self.error}"


class StatsAggregator:
    def __init__(self, session: TargetSession) -> None:
        self._session = session

    async def summarize(self) -> StatsSummary:
        try:
            stats = await asyncio.to_thread(self._session.fetch_stats)
        except Exception as exc:
            log.error("migration_stats_failed", error=str(exc))
            return StatsSummary(error=str(exc))

        log.info("migration_stats", **stats.model_dump())
        return StatsSummary(stats=stats)
