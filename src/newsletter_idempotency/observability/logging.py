"""Structured logging configuration for the idempotent-request core.

Logs are emitted through structlog with dotted event names and key/value
context, so claim races and sweeps can be followed per owner and key in a
log aggregation system.

Events emitted by the package:
    - ``claim.started`` / ``claim.replayed`` / ``claim.in_progress``
    - ``response.saved`` / ``claim.released``
    - ``wait.timeout`` / ``wait.released``
    - ``replay.mismatch``
    - ``sweeper.started`` / ``sweeper.completed`` / ``sweeper.failed`` /
      ``sweeper.stopped``

Examples:
    Configure logging once at startup::

        from newsletter_idempotency.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True)

    Use the logger::

        logger = get_logger(__name__)
        logger.info("claim.started", owner_id="user-1", key="abc-123")

    Output (JSON)::

        {"owner_id": "user-1", "key": "abc-123", "event": "claim.started",
         "level": "info", "timestamp": "2026-10-19T10:30:00.000000Z"}
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, emit JSON logs; if False, use console format
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    processors: list[object] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,  # type: ignore[arg-type]
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module)
    """
    return structlog.get_logger(name)


def bind_request_context(owner_id: str, key: str) -> None:
    """Bind the owner and key to every log line of the current task.

    Uses structlog's contextvars integration, so concurrent requests keep
    separate contexts.
    """
    structlog.contextvars.bind_contextvars(owner_id=owner_id, key=key)


def clear_request_context() -> None:
    """Drop the context bound by ``bind_request_context``."""
    structlog.contextvars.unbind_contextvars("owner_id", "key")
