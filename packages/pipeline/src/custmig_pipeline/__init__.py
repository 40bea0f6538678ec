"""
custmig_pipeline — Migrates customer documents from MongoDB into a normalized
relational store (customers + deduplicated addresses).

Architecture:
  sources/     — source-store adapters (MongoDB, mongoexport JSON-lines)
  transforms/  — raw document → validated Customer/Address
  loaders/     — target stores (DuckDB, Supabase RPC) and dead-letter sinks
  pipelines/   — orchestrator, retry supervisor, connectivity guard, stats, scheduler
  utils/       — structlog configuration, tenacity retry policy

Quick start:
    from custmig_pipeline.pipelines.migration import run
    import asyncio
    report = asyncio.run(run())
    print(report.summary())

CLI:
    custmig run
    custmig schedule --delay 30 --period 30 --repeat-count 1
    custmig record 65f0c3a2e4b0f1a2b3c4d5e6
    custmig check
    custmig stats
    custmig dead-letters

Shared code from custmig_shared:
    from custmig_shared.config import settings
    from custmig_shared.db import duckdb_connection, create_supabase_client
    from custmig_shared.models import Address, Customer, MigrationStats, DeadLetter
"""

__version__ = "0.1.0"
