"""
loaders/supabase_target.py — Remote Postgres target reached through Supabase.

The target database exposes two functions that this loader calls over RPC:

  upsert_customer(p_source_id, p_name, p_email, p_street, p_city, p_country) → integer
      address dedup + customer upsert as one server-side transaction
  get_migration_stats() → (customer_count, address_count, distinct_countries, distinct_cities)

Their DDL is owned by the database, not by this package.

Usage:
    from custmig_pipeline.loaders.supabase_target import SupabaseTarget

    target = SupabaseTarget()
    async with target.open() as session:
        customer_id = session.upsert_customer(customer)
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
from supabase import Client

from custmig_pipeline.errors import ConnectivityError, PersistenceError
from custmig_pipeline.loaders.base import MigrationTarget, TargetSession
from custmig_shared.constants import RPC_MIGRATION_STATS, RPC_UPSERT_CUSTOMER, TABLE_CUSTOMERS
from custmig_shared.db import create_supabase_client
from custmig_shared.models import Customer, MigrationStats

log = structlog.get_logger(__name__)


class SupabaseSession(TargetSession):
    """TargetSession over one Supabase client."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def ping(self) -> bool:
        self._client.table(TABLE_CUSTOMERS).select("id").limit(1).execute()
        return True

    def upsert_customer(self, customer: Customer) -> int:
        try:
            result = self._client.rpc(RPC_UPSERT_CUSTOMER, customer.to_rpc_params()).execute()
        except Exception as exc:
            log.error(
                "customer_upsert_failed",
                source_id=customer.source_id,
                error=str(exc),
            )
            raise PersistenceError(
                f"upsert failed for customer {customer.source_id}", cause=exc
            ) from exc

        customer_id = self._scalar(result.data)
        if customer_id is None:
            raise PersistenceError(
                f"{RPC_UPSERT_CUSTOMER} returned no id for customer {customer.source_id}"
            )
        return customer_id

    def fetch_stats(self) -> MigrationStats:
        try:
            result = self._client.rpc(RPC_MIGRATION_STATS, {}).execute()
        except Exception as exc:
            raise PersistenceError("stats query failed", cause=exc) from exc

        data = result.data
        row = data[0] if isinstance(data, list) and data else data
        if not isinstance(row, dict):
            raise PersistenceError(f"{RPC_MIGRATION_STATS} returned no rows")
        return MigrationStats.from_db_row(row)

    @staticmethod
    def _scalar(data: Any) -> int | None:
        """PostgREST returns a bare scalar, or a one-row list for some function shapes."""
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, dict):
            data = next(iter(data.values()), None)
        if data is None:
            return None
        return int(data)


class SupabaseTarget(MigrationTarget):
    """Creates one Supabase client per run."""

    name = "supabase"

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        *,
        client_factory: Callable[..., Client] = create_supabase_client,
    ) -> None:
        self._url = url
        self._key = key
        self._client_factory = client_factory

    @asynccontextmanager
    async def open(self) -> AsyncIterator[SupabaseSession]:
        try:
            client = self._client_factory(self._url, self._key)
        except Exception as exc:
            log.error("supabase_open_failed", error=str(exc))
            raise ConnectivityError(f"cannot create Supabase client: {exc}") from exc

        try:
            yield SupabaseSession(client)
        finally:
            log.debug("supabase_session_released")
