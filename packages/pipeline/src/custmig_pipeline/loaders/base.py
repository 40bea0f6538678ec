"""
loaders/base.py — Abstract interface of a migration target store.

A target hands out one TargetSession per run through ``open()``. The session
is the scoped storage handle every component receives explicitly: the
Connectivity Guard pings it, the Retry Supervisor upserts through it and the
Stats Aggregator queries it. ``open()`` releases the handle on every exit path,
including an early abort by the guard.

Session methods are synchronous (database drivers are); the pipeline calls
them from a worker thread so a slow store never blocks the event loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from custmig_shared.models import Customer, MigrationStats


class TargetSession(ABC):
    """Storage handle for a single migration run."""

    @abstractmethod
    def ping(self) -> bool:
        """
        Lightweight liveness check.

        Returns:
            True when the store answers. May raise on driver errors; the
            Connectivity Guard turns those into False.
        """
        ...

    @abstractmethod
    def upsert_customer(self, customer: Customer) -> int:
        """
        Deduplicate the address and insert-or-update the customer atomically.

        Returns:
            The customer's integer identifier (stable across updates).

        Raises:
            PersistenceError: on any store failure. No internal retry.
        """
        ...

    @abstractmethod
    def fetch_stats(self) -> MigrationStats:
        """
        Read-only reconciliation counts.

        Raises:
            PersistenceError: when the query fails.
        """
        ...


class MigrationTarget(ABC):
    """Factory of per-run TargetSessions."""

    # Override in subclass — used for logging
    name: str = "unknown"

    @abstractmethod
    @asynccontextmanager
    async def open(self) -> AsyncIterator[TargetSession]:
        """
        Acquire a session for one run and release it on exit.

        Raises:
            ConnectivityError: when the store cannot be opened at all.
        """
        yield  # type: ignore[misc]
