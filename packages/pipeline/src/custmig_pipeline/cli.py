"""
cli.py — Click CLI entrypoint for the customer migration.

Usage:
    custmig run
    custmig schedule --delay 30 --period 30 --repeat-count 1
    custmig record 65f0c3a2e4b0f1a2b3c4d5e6
    custmig check
    custmig stats
    custmig dead-letters --limit 20
    custmig dead-letters --summary

Exit codes: 0 success, 1 records dead-lettered / not found, 2 target unreachable,
130 schedule interrupted.
"""

from __future__ import annotations

import asyncio
import sys

import click

from custmig_pipeline.errors import ConnectivityError
from custmig_pipeline.loaders.dead_letter import JsonLinesDeadLetterSink, summarize_dead_letters
from custmig_pipeline.pipelines.guard import ConnectivityGuard
from custmig_pipeline.pipelines.migration import RunReport, build_pipeline, build_target
from custmig_pipeline.pipelines.scheduler import run_on_schedule
from custmig_pipeline.pipelines.stats import StatsAggregator, StatsSummary
from custmig_pipeline.pipelines.supervisor import RecordState
from custmig_pipeline.utils.logging import configure_logging
from custmig_shared.config import settings

EXIT_FAILED = 1
EXIT_UNREACHABLE = 2
EXIT_INTERRUPTED = 130


def _exit_code(report: RunReport) -> int:
    if report.status == "aborted":
        return EXIT_UNREACHABLE
    return 0 if report.ok else EXIT_FAILED


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["console", "json"]),
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """Migrate customer documents into the relational target."""
    configure_logging(log_level=log_level, log_format=log_format)


@main.command()
def run() -> None:
    """Run one full migration pass."""
    pipeline = build_pipeline()
    report = asyncio.run(pipeline.run())
    click.echo(report.summary())
    sys.exit(_exit_code(report))


@main.command()
@click.option("--delay", type=float, default=settings.schedule_delay, show_default=True,
              help="Seconds before the first run")
@click.option("--period", type=float, default=settings.schedule_period, show_default=True,
              help="Seconds between runs")
@click.option("--repeat-count", type=int, default=settings.schedule_repeat_count,
              show_default=True, help="Number of runs (0 = until interrupted)")
def schedule(delay: float, period: float, repeat_count: int) -> None:
    """Run the migration on a timer."""
    pipeline = build_pipeline()
    try:
        reports = asyncio.run(
            run_on_schedule(pipeline, delay=delay, period=period, repeat_count=repeat_count)
        )
    except KeyboardInterrupt:
        click.echo("Schedule interrupted", err=True)
        sys.exit(EXIT_INTERRUPTED)
    for report in reports:
        click.echo(report.summary())
    sys.exit(max((_exit_code(r) for r in reports), default=0))


@main.command()
@click.argument("source_id")
def record(source_id: str) -> None:
    """Migrate a single source document by its identifier."""
    pipeline = build_pipeline()
    try:
        outcome = asyncio.run(pipeline.migrate_record(source_id))
    except ConnectivityError as exc:
        click.echo(f"Target unreachable: {exc}", err=True)
        sys.exit(EXIT_UNREACHABLE)

    if outcome is None:
        click.echo(f"No source document with id {source_id}", err=True)
        sys.exit(EXIT_FAILED)
    if outcome.state is RecordState.SUCCEEDED:
        click.echo(f"Customer {source_id} migrated with id {outcome.customer_id}")
        return
    click.echo(
        f"Customer {source_id} dead-lettered after {outcome.attempts} attempt(s): {outcome.error}",
        err=True,
    )
    sys.exit(EXIT_FAILED)


async def _check() -> bool:
    async with build_target(settings).open() as session:
        guard = ConnectivityGuard(session, timeout=settings.probe_timeout)
        ready = await guard.check_ready()
        await guard.settle()
        return ready


@main.command()
def check() -> None:
    """Ping the target store."""
    try:
        ready = asyncio.run(_check())
    except ConnectivityError as exc:
        click.echo(f"Target check FAILED: {exc}", err=True)
        sys.exit(EXIT_UNREACHABLE)
    click.echo(f"Target check: {'OK' if ready else 'FAILED'}")
    if not ready:
        sys.exit(EXIT_UNREACHABLE)


async def _stats() -> StatsSummary:
    async with build_target(settings).open() as session:
        return await StatsAggregator(session).summarize()


@main.command()
def stats() -> None:
    """Show reconciliation counts of the target store."""
    try:
        summary = asyncio.run(_stats())
    except ConnectivityError as exc:
        click.echo(f"Target unreachable: {exc}", err=True)
        sys.exit(EXIT_UNREACHABLE)
    click.echo(summary.describe())
    if not summary.ok:
        sys.exit(EXIT_FAILED)


@main.command("dead-letters")
@click.option("--limit", type=int, default=20, show_default=True, help="Most recent entries to show")
@click.option("--summary", is_flag=True, help="Aggregate per failure kind instead of listing")
def dead_letters(limit: int, summary: bool) -> None:
    """List the most recent dead-lettered records."""
    sink = JsonLinesDeadLetterSink(settings.dead_letter_path)
    entries = sink.read_all()
    if not entries:
        click.echo("  No dead-lettered records.")
        return
    if summary:
        click.echo(f"Dead letters by failure kind ({len(entries)} total):")
        for row in summarize_dead_letters(entries).iter_rows(named=True):
            click.echo(
                f"  {row['failure_kind']:12s} {row['records']:6d}  "
                f"max x{row['max_attempts']}  last {row['last_seen'].isoformat()[:19]}  "
                f"{row['sample_error']}"
            )
        return
    click.echo(f"Dead letters ({len(entries)} total, {sink.path}):")
    for entry in entries[-limit:]:
        click.echo(
            f"  ✗ {entry.timestamp.isoformat()[:19]}  "
            f"{entry.source_id or '?':26s} "
            f"{entry.failure_kind:12s} "
            f"x{entry.attempt_count}  {entry.error_message}"
        )


if __name__ == "__main__":
    main()
