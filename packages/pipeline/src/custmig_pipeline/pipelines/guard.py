"""
pipelines/guard.py — Preflight reachability check of the target store.

The ping runs in a worker thread and is bounded by a timeout, so a hung
connection cannot stall the run. A failed or timed-out ping is reported as
"not ready", never raised.

A worker thread cannot be cancelled: after a timeout the ping keeps running
against the session. Callers that are about to release the session await
settle() first, which waits a bounded time for the abandoned ping to return.
"""

from __future__ import annotations

import asyncio

import structlog

from custmig_pipeline.errors import ConnectivityError
from custmig_pipeline.loaders.base import TargetSession

log = structlog.get_logger(__name__)

DEFAULT_PING_TIMEOUT = 5.0  # seconds


class ConnectivityGuard:
    """Liveness check of a TargetSession."""

    def __init__(self, session: TargetSession, timeout: float = DEFAULT_PING_TIMEOUT) -> None:
        self._session = session
        self._timeout = timeout
        self._abandoned: asyncio.Future[bool] | None = None

    @property
    def ping_in_flight(self) -> bool:
        """True while a timed-out ping is still running in its thread."""
        return self._abandoned is not None and not self._abandoned.done()

    async def check_ready(self) -> bool:
        ping = asyncio.ensure_future(asyncio.to_thread(self._session.ping))
        try:
            ready = await asyncio.wait_for(asyncio.shield(ping), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._abandoned = ping
            # Consume the late result so it isn't reported as never retrieved.
            ping.add_done_callback(lambda f: f.cancelled() or f.exception())
            log.error("target_ping_timeout", timeout_s=self._timeout)
            return False
        except Exception as exc:
            log.error("target_ping_failed", error=str(exc))
            return False

        log.info("target_ping", status="OK" if ready else "FAILED")
        return bool(ready)

    async def require_ready(self) -> None:
        """Raise ConnectivityError unless check_ready() passes."""
        if not await self.check_ready():
            raise ConnectivityError("target store is not reachable")

    async def settle(self, grace: float | None = None) -> bool:
        """
        Wait up to `grace` seconds (default: the ping timeout) for an
        abandoned ping to finish.

        Returns:
            True when no ping is left running against the session.
        """
        if not self.ping_in_flight:
            return True
        assert self._abandoned is not None
        grace = self._timeout if grace is None else grace
        done, _ = await asyncio.wait({self._abandoned}, timeout=grace)
        if not done:
            log.warning("target_ping_abandoned", grace_s=grace)
            return False
        return True
