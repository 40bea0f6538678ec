"""
constants.py — shared constants used by the migration pipeline.

Table, RPC and status names live here so the DuckDB and Supabase targets,
the CLI and the tests agree on them.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Target store objects
# ---------------------------------------------------------------------------
TABLE_ADDRESSES: Final[str] = "addresses"
TABLE_CUSTOMERS: Final[str] = "customers"

RPC_UPSERT_CUSTOMER: Final[str] = "upsert_customer"
RPC_MIGRATION_STATS: Final[str] = "get_migration_stats"

# ---------------------------------------------------------------------------
# Source store
# ---------------------------------------------------------------------------
SOURCE_ID_FIELD: Final[str] = "_id"

# ---------------------------------------------------------------------------
# Typed literals
# ---------------------------------------------------------------------------
RunStatus = Literal["success", "partial_failure", "failure", "aborted", "skipped"]
FailureKind = Literal["validation", "persistence"]
