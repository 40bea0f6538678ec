"""
tests/test_loaders/test_supabase_target.py — Supabase RPC target.

The Supabase client is a MagicMock; tests assert on the RPC calls made and
on how results and failures are mapped.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from custmig_pipeline.errors import ConnectivityError, PersistenceError
from custmig_pipeline.loaders.supabase_target import SupabaseSession, SupabaseTarget
from custmig_shared.models import Address, Customer


def _customer() -> Customer:
    return Customer(
        source_id="abc123",
        name="Jane Doe",
        email="jane@x.com",
        address=Address(street="Main 1", city="Lima"),
    )


def _client_returning(data) -> MagicMock:
    client = MagicMock()
    result = MagicMock()
    result.data = data
    client.rpc.return_value.execute.return_value = result
    return client


class TestSupabaseSession:
    def test_upsert_calls_rpc_with_flat_params(self):
        client = _client_returning(7)

        customer_id = SupabaseSession(client).upsert_customer(_customer())

        assert customer_id == 7
        client.rpc.assert_called_once_with(
            "upsert_customer",
            {
                "p_source_id": "abc123",
                "p_name": "Jane Doe",
                "p_email": "jane@x.com",
                "p_street": "Main 1",
                "p_city": "Lima",
                "p_country": None,
            },
        )

    @pytest.mark.parametrize("data", [[7], [{"upsert_customer": 7}], "7"])
    def test_upsert_accepts_wrapped_scalars(self, data):
        client = _client_returning(data)

        assert SupabaseSession(client).upsert_customer(_customer()) == 7

    def test_upsert_without_id_raises(self):
        client = _client_returning(None)

        with pytest.raises(PersistenceError, match="returned no id"):
            SupabaseSession(client).upsert_customer(_customer())

    def test_upsert_failure_wraps_cause(self):
        client = MagicMock()
        boom = RuntimeError("connection reset")
        client.rpc.return_value.execute.side_effect = boom

        with pytest.raises(PersistenceError) as exc_info:
            SupabaseSession(client).upsert_customer(_customer())

        assert exc_info.value.cause is boom
        assert "connection reset" in str(exc_info.value)

    def test_stats_from_row_list(self):
        client = _client_returning(
            [{"customer_count": 10, "address_count": 9, "distinct_countries": 5, "distinct_cities": 8}]
        )

        stats = SupabaseSession(client).fetch_stats()

        client.rpc.assert_called_once_with("get_migration_stats", {})
        assert stats.customer_count == 10
        assert stats.distinct_cities == 8

    def test_stats_empty_raises(self):
        client = _client_returning([])

        with pytest.raises(PersistenceError, match="returned no rows"):
            SupabaseSession(client).fetch_stats()

    def test_stats_failure_raises(self):
        client = MagicMock()
        client.rpc.return_value.execute.side_effect = RuntimeError("timeout")

        with pytest.raises(PersistenceError, match="stats query failed"):
            SupabaseSession(client).fetch_stats()

    def test_ping_selects_one_row(self):
        client = MagicMock()

        assert SupabaseSession(client).ping() is True
        client.table.assert_called_once_with("customers")
        client.table.return_value.select.return_value.limit.assert_called_once_with(1)


class TestSupabaseTarget:
    @pytest.mark.asyncio
    async def test_open_uses_factory(self):
        client = MagicMock()
        factory = MagicMock(return_value=client)
        target = SupabaseTarget("http://db", "key", client_factory=factory)

        async with target.open() as session:
            assert isinstance(session, SupabaseSession)

        factory.assert_called_once_with("http://db", "key")

    @pytest.mark.asyncio
    async def test_factory_error_is_connectivity_error(self):
        factory = MagicMock(side_effect=RuntimeError("SUPABASE_SERVICE_KEY is not set"))
        target = SupabaseTarget(client_factory=factory)

        with pytest.raises(ConnectivityError, match="SUPABASE_SERVICE_KEY"):
            async with target.open():
                pass
