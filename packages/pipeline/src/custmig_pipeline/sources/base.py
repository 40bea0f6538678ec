"""
sources/base.py — Abstract base class for source-store adapters.

Each concrete source must implement:
  stream() — yield every raw document of the collection, in arrival order
  get()    — fetch one raw document by its identifier (single-record migration)

close() releases whatever the adapter opened; the pipeline calls it on every
exit path. Adapters connect lazily, so a run aborted before streaming never
touches the source store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

import structlog

log = structlog.get_logger(__name__)

RawRecord = dict[str, Any]


class BaseSource(ABC):
    """Abstract base for custmig source-store adapters."""

    # Override in subclass — used for logging
    name: str = "unknown"

    def __init__(self) -> None:
        self._log = log.bind(source_name=self.name)

    @abstractmethod
    def stream(self) -> AsyncIterator[RawRecord]:
        """
        Yield raw documents one at a time.

        Implementations should not buffer the whole collection.
        """
        ...

    @abstractmethod
    async def get(self, source_id: str) -> RawRecord | None:
        """Return the document whose identifier is `source_id`, or None."""
        ...

    async def close(self) -> None:
        """Release connections/file handles. Default: nothing to release."""
        return None

    async def count(self) -> int | None:
        """Number of documents, when cheaply known. Used for progress logs."""
        return None
