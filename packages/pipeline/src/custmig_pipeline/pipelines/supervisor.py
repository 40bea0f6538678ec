"""
pipelines/supervisor.py — Per-record retry supervision with dead-lettering.

Every record moves through a small state machine:

    pending → attempting → succeeded
                         → retry_scheduled → attempting → ...
                         → dead_lettered

Operations report their result as a tagged AttemptResult instead of raising,
so retryable persistence failures and non-retryable validation failures are
told apart without inspecting exception types:

    ok       — record migrated, carries the customer id
    invalid  — record malformed; dead-lettered after the first attempt
    failed   — store failure; retried until the policy's max_attempts

A record that exhausts its attempts is published to the dead-letter sink and
the run carries on with the next record. A sink that fails to store the entry
does not stop the run either: the whole record goes to the error log instead.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog
from tenacity import RetryCallState

from custmig_pipeline.loaders.dead_letter import DeadLetterSink
from custmig_pipeline.utils.retry import RetryPolicy, SleepFn
from custmig_shared.constants import FailureKind
from custmig_shared.models import DeadLetter

log = structlog.get_logger(__name__)


class RecordState(str, Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    RETRY_SCHEDULED = "retry_scheduled"
    SUCCEEDED = "succeeded"
    DEAD_LETTERED = "dead_lettered"


@dataclass(frozen=True)
class AttemptResult:
    """Tagged result of one attempt at migrating a record."""

    customer_id: int | None = None
    failure_kind: FailureKind | None = None
    error: str | None = None

    @classmethod
    def ok(cls, customer_id: int) -> "AttemptResult":
        return cls(customer_id=customer_id)

    @classmethod
    def invalid(cls, error: str) -> "AttemptResult":
        return cls(failure_kind="validation", error=error)

    @classmethod
    def failed(cls, error: str) -> "AttemptResult":
        return cls(failure_kind="persistence", error=error)

    @property
    def succeeded(self) -> bool:
        return self.failure_kind is None

    @property
    def retryable(self) -> bool:
        return self.failure_kind == "persistence"


@dataclass
class RecordOutcome:
    """Final state of a supervised record."""

    source_id: str | None
    state: RecordState = RecordState.PENDING
    attempts: int = 0
    customer_id: int | None = None
    error: str | None = None
    failure_kind: FailureKind | None = None
    history: list[RecordState] = field(default_factory=lambda: [RecordState.PENDING])

    def transition(self, state: RecordState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def retried(self) -> bool:
        return self.attempts > 1


Operation = Callable[[], Awaitable[AttemptResult]]


class RetrySupervisor:
    """
    Runs a per-record operation under a RetryPolicy.

    Args:
        sink:   Where exhausted records go.
        policy: Attempts and backoff (default: 3 attempts, 2 s / 4 s waits).
        sleep:  Awaitable sleep; tests pass a recorder instead of asyncio.sleep.
    """

    def __init__(
        self,
        sink: DeadLetterSink,
        policy: RetryPolicy | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._sink = sink
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def supervise(
        self,
        record: dict[str, Any],
        operation: Operation,
        *,
        source_id: str | None = None,
    ) -> RecordOutcome:
        """
        Attempt `operation` until it succeeds, turns out invalid, or attempts run out.

        Args:
            record:    Raw source record, kept for the dead-letter entry.
            operation: Zero-argument coroutine function returning an AttemptResult.
            source_id: Identifier used in logs and dead letters.

        Returns:
            RecordOutcome in state succeeded or dead_lettered.
        """
        outcome = RecordOutcome(source_id=source_id)
        record_log = log.bind(source_id=source_id)

        async def attempt() -> AttemptResult:
            outcome.attempts += 1
            outcome.transition(RecordState.ATTEMPTING)
            try:
                result = await operation()
            except Exception as exc:
                record_log.error(
                    "record_attempt_crashed",
                    attempt=outcome.attempts,
                    error=str(exc),
                    exc_info=True,
                )
                result = AttemptResult.failed(f"{type(exc).__name__}: {exc}")
            if not result.succeeded:
                record_log.warning(
                    "record_attempt_failed",
                    attempt=outcome.attempts,
                    max_attempts=self._policy.max_attempts,
                    failure_kind=result.failure_kind,
                    error=result.error,
                )
            return result

        def before_sleep(state: RetryCallState) -> None:
            outcome.transition(RecordState.RETRY_SCHEDULED)
            record_log.warning(
                "record_retry_scheduled",
                attempt=state.attempt_number,
                delay_s=state.next_action.sleep if state.next_action else None,
            )

        retrying = self._policy.retrying(sleep=self._sleep, before_sleep=before_sleep)
        result: AttemptResult = await retrying(attempt)

        if result.succeeded:
            outcome.customer_id = result.customer_id
            outcome.transition(RecordState.SUCCEEDED)
            record_log.info(
                "record_migrated",
                customer_id=result.customer_id,
                attempts=outcome.attempts,
            )
            return outcome

        outcome.error = result.error
        outcome.failure_kind = result.failure_kind
        entry = DeadLetter.from_record(
            record,
            error_message=result.error or "unknown error",
            attempt_count=outcome.attempts,
            failure_kind=result.failure_kind or "persistence",
            source_id=source_id,
        )
        try:
            self._sink.publish(entry)
        except Exception as exc:
            # The log line is then the only copy of the record.
            record_log.error(
                "dead_letter_publish_failed",
                error=str(exc),
                record_error=entry.error_message,
                attempt_count=entry.attempt_count,
                failure_kind=entry.failure_kind,
                original_record=entry.original_record,
                exc_info=True,
            )
        outcome.transition(RecordState.DEAD_LETTERED)
        return outcome
