"""
Structured logging for chain-ingest.

Logging goes through structlog on top of the standard library, rendered
either for a terminal or as JSON lines for log shippers. Worker threads
log with the same configuration; context bound with ``log_context`` is
stored in contextvars and therefore stays local to the binding thread.

Example:
    >>> from chain_ingest.utils import setup_logging, get_logger
    >>>
    >>> setup_logging(level="INFO", format="json")
    >>> logger = get_logger(__name__)
    >>> logger.info("checkpoint_saved", stream="tx", cursor="3:1024")
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

LOG_FORMATS = ("console", "json")


def setup_logging(
    level: str = "INFO",
    format: str = "console",
    *,
    include_timestamp: bool = True,
    include_location: bool = False,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: "console" or "json"
        include_timestamp: Add an ISO timestamp to each event
        include_location: Add file, line and thread name to each event

    Raises:
        ValueError: If the format is unknown
    """
    if format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {format!r} (expecting console or json)")

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
        force=True,
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))

    if include_location:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.THREAD_NAME,
                ]
            )
        )

    processors.append(structlog.processors.StackInfoRenderer())

    if format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, usually with ``__name__``."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def bind_context(**kwargs: Any) -> None:
    """Bind key/values to every later event logged from this thread."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind context for the duration of a block.

    Example:
        >>> with log_context(stream="tx"):
        ...     logger.info("pipeline_started")  # includes stream="tx"
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield
