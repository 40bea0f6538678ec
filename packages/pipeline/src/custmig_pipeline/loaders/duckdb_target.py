"""
loaders/duckdb_target.py — Embedded relational target backed by DuckDB.

Normalizes customers into two tables:

    addresses (id, street, city, country, created_at, updated_at)
    customers (id, source_id UNIQUE, name, email, address_id → addresses.id, ...)

The atomic upsert is realized client-side: CustomerUpsertEngine wraps the
address deduplication and the customer write in one transaction.

Usage:
    from custmig_pipeline.loaders.duckdb_target import DuckDBTarget

    target = DuckDBTarget("./data/target.duckdb")
    async with target.open() as session:
        customer_id = session.upsert_customer(customer)
        print(session.fetch_stats().describe())
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import ExitStack, asynccontextmanager

import duckdb
import structlog

from custmig_pipeline.errors import ConnectivityError, PersistenceError
from custmig_pipeline.loaders.base import MigrationTarget, TargetSession
from custmig_shared.constants import TABLE_ADDRESSES, TABLE_CUSTOMERS
from custmig_shared.db import duckdb_connection
from custmig_shared.models import Address, Customer, MigrationStats

log = structlog.get_logger(__name__)

# Local bootstrap for the embedded store only; remote targets own their schema.
_BOOTSTRAP_SQL = [
    "CREATE SEQUENCE IF NOT EXISTS addresses_id_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS customers_id_seq START 1",
    f"""
    CREATE TABLE IF NOT EXISTS {TABLE_ADDRESSES} (
        id         INTEGER PRIMARY KEY DEFAULT nextval('addresses_id_seq'),
        street     VARCHAR,
        city       VARCHAR,
        country    VARCHAR,
        created_at TIMESTAMP DEFAULT current_timestamp,
        updated_at TIMESTAMP DEFAULT current_timestamp
    )
    """,
    # address_id -> addresses.id, undeclared: DuckDB cannot update FK columns in place.
    f"""
    CREATE TABLE IF NOT EXISTS {TABLE_CUSTOMERS} (
        id         INTEGER PRIMARY KEY DEFAULT nextval('customers_id_seq'),
        source_id  VARCHAR NOT NULL UNIQUE,
        name       VARCHAR NOT NULL,
        email      VARCHAR NOT NULL,
        address_id INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT current_timestamp,
        updated_at TIMESTAMP DEFAULT current_timestamp
    )
    """,
]

_STATS_SQL = f"""
    SELECT
        (SELECT count(*) FROM {TABLE_CUSTOMERS})                AS customer_count,
        (SELECT count(*) FROM {TABLE_ADDRESSES})                AS address_count,
        (SELECT count(DISTINCT country) FROM {TABLE_ADDRESSES}) AS distinct_countries,
        (SELECT count(DISTINCT city) FROM {TABLE_ADDRESSES})    AS distinct_cities
"""


class AddressDeduplicator:
    """
    Resolves an Address to the id of a canonical addresses row.

    Lookup-then-insert is not atomic and the tuple carries no uniqueness
    constraint: two callers deduplicating the same new tuple concurrently can
    both insert it. The pipeline processes records sequentially, so this only
    matters if resolve() is ever called from parallel workers.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    def find(self, address: Address) -> int | None:
        # IS NOT DISTINCT FROM: an absent field matches only an absent field.
        row = self._conn.execute(
            f"""
            SELECT id FROM {TABLE_ADDRESSES}
            WHERE street IS NOT DISTINCT FROM ?
              AND city IS NOT DISTINCT FROM ?
              AND country IS NOT DISTINCT FROM ?
            ORDER BY id
            LIMIT 1
            """,
            list(address.key),
        ).fetchone()
        return int(row[0]) if row else None

    def resolve(self, address: Address) -> int:
        """Return the id of the row matching the exact tuple, inserting it if absent."""
        existing = self.find(address)
        if existing is not None:
            return existing

        row = self._conn.execute(
            f"INSERT INTO {TABLE_ADDRESSES} (street, city, country) VALUES (?, ?, ?) RETURNING id",
            list(address.key),
        ).fetchone()
        address_id = int(row[0])  # type: ignore[index]
        log.debug("address_created", address_id=address_id, city=address.city)
        return address_id


class CustomerUpsertEngine:
    """
    Insert-or-update of a customer keyed by source_id, in one transaction.

    Repeating an upsert with identical values returns the same id and leaves
    the row untouched (updated_at included).
    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        deduplicator: AddressDeduplicator | None = None,
    ) -> None:
        self._conn = conn
        self._deduplicator = deduplicator or AddressDeduplicator(conn)

    def upsert(self, customer: Customer) -> int:
        """
        Resolve the address, then update or insert the customer row.

        Returns:
            Customer id.

        Raises:
            PersistenceError: wrapping any DuckDB error; the transaction is rolled back.
        """
        try:
            self._conn.begin()
            try:
                customer_id = self._write(customer)
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise
        except duckdb.Error as exc:
            log.error("customer_upsert_failed", source_id=customer.source_id, error=str(exc))
            raise PersistenceError(
                f"upsert failed for customer {customer.source_id}", cause=exc
            ) from exc
        return customer_id

    def _write(self, customer: Customer) -> int:
        address_id = self._deduplicator.resolve(customer.address)

        row = self._conn.execute(
            f"SELECT id FROM {TABLE_CUSTOMERS} WHERE source_id = ?",
            [customer.source_id],
        ).fetchone()

        if row is not None:
            customer_id = int(row[0])
            self._conn.execute(
                f"""
                UPDATE {TABLE_CUSTOMERS}
                SET name = ?, email = ?, address_id = ?, updated_at = current_timestamp
                WHERE id = ?
                  AND (name IS DISTINCT FROM ?
                       OR email IS DISTINCT FROM ?
                       OR address_id IS DISTINCT FROM ?)
                """,
                [
                    customer.name, customer.email, address_id, customer_id,
                    customer.name, customer.email, address_id,
                ],
            )
            log.debug("customer_updated", source_id=customer.source_id, customer_id=customer_id)
            return customer_id

        values = customer.to_insert_dict(address_id)
        inserted = self._conn.execute(
            f"""
            INSERT INTO {TABLE_CUSTOMERS} (source_id, name, email, address_id)
            VALUES (?, ?, ?, ?)
            RETURNING id
            """,
            [values["source_id"], values["name"], values["email"], values["address_id"]],
        ).fetchone()
        customer_id = int(inserted[0])  # type: ignore[index]
        log.debug("customer_created", source_id=customer.source_id, customer_id=customer_id)
        return customer_id


class DuckDBSession(TargetSession):
    """TargetSession over one open DuckDB connection."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn
        self._engine = CustomerUpsertEngine(conn)

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        return self._conn

    def ping(self) -> bool:
        row = self._conn.execute("SELECT 1").fetchone()
        return row is not None and row[0] == 1

    def upsert_customer(self, customer: Customer) -> int:
        return self._engine.upsert(customer)

    def fetch_stats(self) -> MigrationStats:
        try:
            cursor = self._conn.execute(_STATS_SQL)
            row = cursor.fetchone()
            columns = [d[0] for d in cursor.description]
        except duckdb.Error as exc:
            raise PersistenceError("stats query failed", cause=exc) from exc
        return MigrationStats.from_db_row(dict(zip(columns, row or ())))


class DuckDBTarget(MigrationTarget):
    """Opens a DuckDB file (or ":memory:") per run and bootstraps its tables."""

    name = "duckdb"

    def __init__(self, path: str | None = None) -> None:
        self._path = path

    def _bootstrap(self, conn: duckdb.DuckDBPyConnection) -> None:
        for statement in _BOOTSTRAP_SQL:
            conn.execute(statement)

    @asynccontextmanager
    async def open(self) -> AsyncIterator[DuckDBSession]:
        stack = ExitStack()
        try:
            conn = stack.enter_context(duckdb_connection(self._path))
            self._bootstrap(conn)
        except (duckdb.Error, OSError) as exc:
            stack.close()
            log.error("duckdb_open_failed", path=self._path, error=str(exc))
            raise ConnectivityError(f"cannot open DuckDB target: {exc}") from exc

        with stack:
            yield DuckDBSession(conn)
