"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  jane_doc          — the canonical single-customer source document
  make_source()     — in-memory BaseSource over a list of documents
  duckdb_target     — DuckDBTarget on a file under tmp_path (survives across runs)
  unreachable_target — MigrationTarget whose ping fails and that counts writes
  memory_sink       — MemoryDeadLetterSink
  sleep_recorder    — awaitable sleep that records delays instead of waiting
"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest

from custmig_pipeline.loaders.base import MigrationTarget, TargetSession
from custmig_pipeline.loaders.dead_letter import MemoryDeadLetterSink
from custmig_pipeline.loaders.duckdb_target import DuckDBTarget
from custmig_pipeline.sources.base import BaseSource, RawRecord
from custmig_shared.models import Customer, MigrationStats


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

@pytest.fixture
def jane_doc() -> dict[str, Any]:
    return {
        "_id": "abc123",
        "name": "Jane Doe",
        "email": "jane@x.com",
        "address": {"street": "Main 1", "city": "Lima", "country": "Peru"},
    }


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------

class ListSource(BaseSource):
    """BaseSource over a list of documents that counts how it is used."""

    name = "list"

    def __init__(self, docs: list[RawRecord]) -> None:
        super().__init__()
        self.docs = docs
        self.stream_calls = 0
        self.get_calls = 0
        self.records_yielded = 0
        self.closed = 0

    async def stream(self) -> AsyncIterator[RawRecord]:
        self.stream_calls += 1
        for doc in self.docs:
            self.records_yielded += 1
            yield copy.deepcopy(doc)

    async def get(self, source_id: str) -> RawRecord | None:
        self.get_calls += 1
        for doc in self.docs:
            if str(doc.get("_id")) == source_id:
                return copy.deepcopy(doc)
        return None

    async def close(self) -> None:
        self.closed += 1


@pytest.fixture
def make_source():
    def _make(*docs: RawRecord) -> ListSource:
        return ListSource(list(docs))

    return _make


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------

@pytest.fixture
def duckdb_path(tmp_path: Path) -> str:
    return str(tmp_path / "target.duckdb")


@pytest.fixture
def duckdb_target(duckdb_path: str) -> DuckDBTarget:
    return DuckDBTarget(duckdb_path)


class UnreachableSession(TargetSession):
    def __init__(self) -> None:
        self.upserts: list[Customer] = []
        self.stats_calls = 0

    def ping(self) -> bool:
        return False

    def upsert_customer(self, customer: Customer) -> int:
        self.upserts.append(customer)
        return 1

    def fetch_stats(self) -> MigrationStats:
        self.stats_calls += 1
        return MigrationStats()


class UnreachableTarget(MigrationTarget):
    name = "unreachable"

    def __init__(self) -> None:
        self.session = UnreachableSession()
        self.opened = 0
        self.released = 0

    @asynccontextmanager
    async def open(self) -> AsyncIterator[UnreachableSession]:
        self.opened += 1
        try:
            yield self.session
        finally:
            self.released += 1


@pytest.fixture
def unreachable_target() -> UnreachableTarget:
    return UnreachableTarget()


# ---------------------------------------------------------------------------
# Dead letters and sleeping
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_sink() -> MemoryDeadLetterSink:
    return MemoryDeadLetterSink()


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
