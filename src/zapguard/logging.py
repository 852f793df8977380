"""Structured logging for breaker events.

zapguard modules log through stdlib loggers named after the module (for
example ``zapguard.remote``) and pass event fields as ``extra``. Hooks built
by :func:`zapguard.hooks.logging_hooks` accept either such a logger or a
structlog bound logger. :func:`configure_structlog` routes both kinds through
one structlog ``ProcessorFormatter`` so events render identically.
"""

from __future__ import annotations

import logging
import sys
from typing import Literal, Protocol

import structlog

LOG_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
ZAPGUARD_LOGGER_NAME = "zapguard"


class StructuredLogger(Protocol):
    """Logger accepting an event name plus keyword fields."""

    def info(self, event: str, **kwargs: object) -> None:
        """Log an informational event."""

    def warning(self, event: str, **kwargs: object) -> None:
        """Log a warning event."""


BreakerLogger = (
    StructuredLogger | logging.Logger | logging.LoggerAdapter[logging.Logger]
)


def get_log_level_value(level: str) -> int:
    """Return the stdlib level number for a case-insensitive level name."""
    normalized = level.strip().upper()
    if normalized not in LOG_LEVEL_NAMES:
        choices = ", ".join(sorted(LOG_LEVEL_NAMES))
        raise ValueError(f"log_level must be one of: {choices}")
    return logging.getLevelNamesMapping()[normalized]


def _emit(
    logger: BreakerLogger,
    level: Literal["info", "warning"],
    event: str,
    fields: dict[str, object],
) -> None:
    method = getattr(logger, level)
    if isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        method(event, extra=fields)
    else:
        method(event, **fields)


def log_info(logger: BreakerLogger, event: str, **fields: object) -> None:
    """Log an informational breaker event."""
    _emit(logger, "info", event, fields)


def log_warning(logger: BreakerLogger, event: str, **fields: object) -> None:
    """Log a breaker event that needs attention."""
    _emit(logger, "warning", event, fields)


def configure_structlog(
    *,
    log_level: str,
    json_output: bool | None = None,
) -> structlog.stdlib.BoundLogger:
    """Install a single stderr handler rendering breaker events via structlog.

    Args:
        log_level: Root level name, for example ``"INFO"``.
        json_output: Force JSON (``True``) or console (``False``) rendering.
            ``None`` picks console output when stderr is a TTY.

    Returns:
        A structlog logger named ``zapguard``, suitable for
        :func:`zapguard.hooks.logging_hooks`.

    Calling it again replaces the previous handler.
    """
    level_value = get_log_level_value(log_level)
    if json_output is None:
        json_output = not sys.stderr.isatty()
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    # stdlib records from zapguard modules carry their fields in ``extra``.
    foreign_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        timestamper,
    ]
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=foreign_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    logging.basicConfig(handlers=[handler], level=level_value, force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            timestamper,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.get_logger(ZAPGUARD_LOGGER_NAME)
