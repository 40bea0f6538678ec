"""
db.py — Scoped storage handles for the target and source stores.

Each migration run acquires its own handle and releases it on exit, so no
connection state is shared between runs.

Usage:
    from custmig_shared.db import duckdb_connection, create_supabase_client, create_mongo_client

    with duckdb_connection("./data/target.duckdb") as conn:
        conn.execute("SELECT 1")

    supabase = create_supabase_client()
    mongo = create_mongo_client()
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import duckdb
import structlog
from supabase import Client, create_client

from custmig_shared.config import settings

if TYPE_CHECKING:
    from pymongo import MongoClient

logger = structlog.get_logger(__name__)

MEMORY_PATH = ":memory:"


# ---------------------------------------------------------------------------
# DuckDB — one connection per run
# ---------------------------------------------------------------------------


@contextmanager
def duckdb_connection(path: str | None = None) -> Iterator[duckdb.DuckDBPyConnection]:
    """
    Open a DuckDB connection and close it when the block exits.

    Creates parent directories for file-backed databases.

    Args:
        path: Database file path, or ":memory:". Defaults to settings.duckdb_path.

    Yields:
        duckdb.DuckDBPyConnection
    """
    db_path = path or settings.duckdb_path
    if db_path != MEMORY_PATH:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = duckdb.connect(db_path)
    logger.debug("duckdb_connected", path=db_path)
    try:
        yield conn
    finally:
        conn.close()
        logger.debug("duckdb_closed", path=db_path)


# ---------------------------------------------------------------------------
# Supabase
# ---------------------------------------------------------------------------


def create_supabase_client(url: str | None = None, key: str | None = None) -> Client:
    """
    Return a new Supabase client using the service role key.

    Raises:
        RuntimeError: if no service key is configured.
    """
    service_key = key or settings.supabase_service_key
    if not service_key:
        raise RuntimeError(
            "SUPABASE_SERVICE_KEY is not set. "
            "Set it in .env before using the supabase target."
        )
    client = create_client(url or settings.supabase_url, service_key)
    logger.info("supabase_client_created", role="service_role")
    return client


# ---------------------------------------------------------------------------
# MongoDB
# ---------------------------------------------------------------------------


def create_mongo_client(uri: str | None = None) -> "MongoClient":
    """Return a new pymongo client. The driver connects lazily on first use."""
    from pymongo import MongoClient

    client: MongoClient = MongoClient(uri or settings.mongo_uri)
    logger.info("mongo_client_created")
    return client
