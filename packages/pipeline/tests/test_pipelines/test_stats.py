"""
tests/test_pipelines/test_stats.py — Reconciliation statistics.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from custmig_pipeline.errors import PersistenceError
from custmig_pipeline.pipelines.stats import StatsAggregator, StatsSummary
from custmig_shared.models import MigrationStats


class TestStatsAggregator:
    @pytest.mark.asyncio
    async def test_counts_reported(self):
        session = MagicMock()
        session.fetch_stats.return_value = MigrationStats(
            customer_count=3, address_count=2, distinct_countries=1, distinct_cities=2
        )

        summary = await StatsAggregator(session).summarize()

        assert summary.ok
        assert summary.describe() == "Migration stats: 3 customers, 2 addresses, 1 countries, 2 cities"

    @pytest.mark.asyncio
    async def test_query_failure_is_reported_not_raised(self):
        session = MagicMock()
        session.fetch_stats.side_effect = PersistenceError("stats query failed")

        summary = await StatsAggregator(session).summarize()

        assert not summary.ok
        assert summary.describe() == "Error fetching migration stats: stats query failed"

    @pytest.mark.asyncio
    async def test_against_duckdb(self, duckdb_target):
        async with duckdb_target.open() as session:
            summary = await StatsAggregator(session).summarize()

        assert summary.stats == MigrationStats()


def test_summary_without_stats_or_error():
    assert StatsSummary(error="boom").describe().endswith("boom")


def test_stats_from_db_row_fills_missing():
    stats = MigrationStats.from_db_row({"customer_count": 4, "address_count": None})

    assert stats.customer_count == 4
    assert stats.address_count == 0
    assert stats.distinct_cities == 0
