"""
pipelines/scheduler.py — Timer trigger for migration runs.

Waits `delay`, runs the pipeline, then waits `period` after each completed
run before the next one, until `repeat_count` runs have happened (0 means no
limit). A run always completes before the next wait starts, so scheduled runs
never overlap.

Usage:
    from custmig_pipeline.pipelines.scheduler import run_on_schedule

    reports = await run_on_schedule(pipeline, delay=30, period=30, repeat_count=1)
"""

from __future__ import annotations

import asyncio
from collections import deque

import structlog

from custmig_pipeline.pipelines.migration import MigrationPipeline, RunReport
from custmig_pipeline.utils.retry import SleepFn

log = structlog.get_logger(__name__)


async def run_on_schedule(
    pipeline: MigrationPipeline,
    *,
    delay: float = 30.0,
    period: float = 30.0,
    repeat_count: int = 1,
    stop: asyncio.Event | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> list[RunReport]:
    """
    Trigger `pipeline.run()` on a fixed schedule.

    Args:
        pipeline:     Pipeline to run.
        delay:        Seconds before the first run.
        period:       Seconds between the end of one run and the next trigger.
        repeat_count: Number of runs; 0 runs until cancelled or stopped.
        stop:         Ends the schedule after the run in progress once set.
        sleep:        Awaitable sleep (tests pass a recorder).

    Returns:
        RunReports of the triggered runs, in order. An unbounded schedule
        (repeat_count=0) keeps only the latest report.
    """
    if repeat_count < 0:
        raise ValueError(f"repeat_count must be >= 0, got {repeat_count}")

    log.info("schedule_start", delay_s=delay, period_s=period, repeat_count=repeat_count)
    reports: deque[RunReport] = deque(maxlen=repeat_count or 1)
    runs = 0

    await sleep(delay)
    while True:
        report = await pipeline.run()
        reports.append(report)
        runs += 1
        log.info(
            "scheduled_run_finished",
            run=runs,
            run_id=report.run_id,
            status=report.status,
            summary=report.summary(),
        )
        if repeat_count and runs >= repeat_count:
            break
        if stop is not None and stop.is_set():
            break
        await sleep(period)

    log.info("schedule_complete", runs=runs)
    return list(reports)
