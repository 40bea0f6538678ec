"""
tests/test_pipelines/test_supervisor.py — Retry supervision state machine.

Tests cover:
  - transient failures followed by success
  - exhaustion → dead letter with attempt count
  - validation failures dead-lettered without retry
  - exponential backoff delays
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from custmig_pipeline.loaders.dead_letter import DeadLetterSink
from custmig_pipeline.pipelines.supervisor import (
    AttemptResult,
    RecordState,
    RetrySupervisor,
)
from custmig_pipeline.utils.retry import RetryPolicy

RECORD = {"_id": "abc123", "name": "Jane Doe"}


class TestRetryPolicy:
    def test_default_delays(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]
        assert policy.delays() == [2.0, 4.0]

    def test_delays_capped(self):
        policy = RetryPolicy(max_attempts=6, base_delay=2.0, max_delay=10.0)

        assert policy.delays() == [2.0, 4.0, 8.0, 10.0, 10.0]


class TestAttemptResult:
    def test_tags(self):
        assert AttemptResult.ok(1).succeeded
        assert not AttemptResult.ok(1).retryable
        assert AttemptResult.failed("x").retryable
        assert not AttemptResult.invalid("x").retryable
        assert not AttemptResult.invalid("x").succeeded


class TestRetrySupervisor:
    @pytest.mark.asyncio
    async def test_first_attempt_success(self, memory_sink, sleep_recorder):
        supervisor = RetrySupervisor(memory_sink, sleep=sleep_recorder)
        op = AsyncMock(return_value=AttemptResult.ok(7))

        outcome = await supervisor.supervise(RECORD, op, source_id="abc123")

        assert outcome.state is RecordState.SUCCEEDED
        assert outcome.customer_id == 7
        assert outcome.attempts == 1
        assert outcome.history == [
            RecordState.PENDING,
            RecordState.ATTEMPTING,
            RecordState.SUCCEEDED,
        ]
        assert sleep_recorder.delays == []
        assert memory_sink.entries == []

    @pytest.mark.asyncio
    async def test_two_transient_failures_then_success(self, memory_sink, sleep_recorder):
        supervisor = RetrySupervisor(memory_sink, sleep=sleep_recorder)
        op = AsyncMock(
            side_effect=[
                AttemptResult.failed("deadlock detected"),
                AttemptResult.failed("deadlock detected"),
                AttemptResult.ok(7),
            ]
        )

        outcome = await supervisor.supervise(RECORD, op, source_id="abc123")

        assert outcome.state is RecordState.SUCCEEDED
        assert outcome.attempts == 3
        assert outcome.retried
        assert outcome.history.count(RecordState.RETRY_SCHEDULED) == 2
        assert sleep_recorder.delays == [2.0, 4.0]
        assert memory_sink.entries == []

    @pytest.mark.asyncio
    async def test_exhausted_record_dead_lettered(self, memory_sink, sleep_recorder):
        supervisor = RetrySupervisor(memory_sink, sleep=sleep_recorder)
        op = AsyncMock(return_value=AttemptResult.failed("connection refused"))

        outcome = await supervisor.supervise(RECORD, op, source_id="abc123")

        assert outcome.state is RecordState.DEAD_LETTERED
        assert outcome.attempts == 3
        assert outcome.error == "connection refused"
        assert op.await_count == 3
        assert sleep_recorder.delays == [2.0, 4.0]

        [entry] = memory_sink.entries
        assert entry.attempt_count == 3
        assert entry.source_id == "abc123"
        assert entry.failure_kind == "persistence"
        assert entry.error_message == "connection refused"
        assert entry.original_record == RECORD

    @pytest.mark.asyncio
    async def test_validation_failure_not_retried(self, memory_sink, sleep_recorder):
        supervisor = RetrySupervisor(memory_sink, sleep=sleep_recorder)
        op = AsyncMock(return_value=AttemptResult.invalid("missing required field 'email'"))

        outcome = await supervisor.supervise(RECORD, op, source_id="abc123")

        assert outcome.state is RecordState.DEAD_LETTERED
        assert outcome.attempts == 1
        assert outcome.failure_kind == "validation"
        assert sleep_recorder.delays == []
        assert memory_sink.entries[0].attempt_count == 1

    @pytest.mark.asyncio
    async def test_raising_operation_treated_as_retryable(self, memory_sink, sleep_recorder):
        supervisor = RetrySupervisor(memory_sink, sleep=sleep_recorder)
        op = AsyncMock(side_effect=[RuntimeError("driver crashed"), AttemptResult.ok(3)])

        outcome = await supervisor.supervise(RECORD, op, source_id="abc123")

        assert outcome.state is RecordState.SUCCEEDED
        assert outcome.attempts == 2
        assert sleep_recorder.delays == [2.0]

    @pytest.mark.asyncio
    async def test_custom_policy(self, memory_sink, sleep_recorder):
        policy = RetryPolicy(max_attempts=5, base_delay=0.5, multiplier=3.0)
        supervisor = RetrySupervisor(memory_sink, policy, sleep=sleep_recorder)
        op = AsyncMock(return_value=AttemptResult.failed("down"))

        outcome = await supervisor.supervise(RECORD, op)

        assert outcome.attempts == 5
        assert sleep_recorder.delays == [0.5, 1.5, 4.5, 13.5]
        assert memory_sink.entries[0].source_id is None

    @pytest.mark.asyncio
    async def test_failing_sink_still_dead_letters(self, sleep_recorder):
        sink = MagicMock(spec=DeadLetterSink)
        sink.publish.side_effect = OSError("disk full")
        supervisor = RetrySupervisor(sink, sleep=sleep_recorder)
        op = AsyncMock(return_value=AttemptResult.invalid("missing required field 'email'"))

        outcome = await supervisor.supervise(RECORD, op, source_id="abc123")

        assert outcome.state is RecordState.DEAD_LETTERED
        assert outcome.error == "missing required field 'email'"
        sink.publish.assert_called_once()
