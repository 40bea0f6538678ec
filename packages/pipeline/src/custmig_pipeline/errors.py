"""
errors.py — Error taxonomy of the migration pipeline.

  ValidationError    — malformed/incomplete source record; never retried
  PersistenceError   — target store failure; retried by the supervisor
  ConnectivityError  — target unreachable; aborts the run before any record is read
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base class for all custmig pipeline errors."""


class ValidationError(MigrationError):
    """A source record is missing required fields or carries blank values."""

    def __init__(self, message: str, *, source_id: str | None = None) -> None:
        super().__init__(message)
        self.source_id = source_id


class PersistenceError(MigrationError):
    """A target store operation failed. `cause` holds the driver exception."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        if self.cause is not None:
            return f"{base}: {self.cause}"
        return base


class ConnectivityError(MigrationError):
    """The target store could not be reached before a run started."""
