"""
utils/logging.py — structlog configuration for the migration process.

Events are rendered as JSON lines or console text (settings.log_format) and
filtered at settings.log_level. The CLI calls configure_logging() once its
options are parsed, which is after every module has created its logger, so
module loggers stay lazy proxies and resolve the configuration on each call.

Usage:
    from custmig_pipeline.utils.logging import configure_logging, get_logger, run_context

    log = get_logger(__name__, pipeline="customer_migration")
    configure_logging(log_level="INFO", log_format="json")

    with run_context(run_id=run_id, target="duckdb"):
        log.info("migration_start")          # carries run_id and target
        # ...so do the supervisor's and the sinks' events
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from custmig_shared.config import settings

# Driver loggers that are chatty at INFO (supabase goes through httpx).
_QUIET_LOGGERS = ("pymongo", "httpx", "httpcore", "filelock")


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Configure structlog and stdlib logging for the migration process.

    Safe to call again: the latest call wins, including for loggers created
    before it.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
    """
    level = log_level or settings.log_level
    fmt = log_format or settings.log_format
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    logging.getLogger().setLevel(numeric_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Module loggers must follow later configure_logging() calls.
        cache_logger_on_first_use=False,
    )


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """
    Return a lazy structlog logger carrying `initial_values` on every event.

    The logger is only assembled when it first logs, so module-level loggers
    honour the configuration in force at that time.
    """
    return structlog.get_logger(name, **initial_values)  # type: ignore[return-value]


@contextmanager
def run_context(**values: Any) -> Iterator[None]:
    """Bind `values` to every event logged in this context, from any module."""
    with structlog.contextvars.bound_contextvars(**values):
        yield
