"""Observability utilities for the idempotent-request core.

- Prometheus metrics for claim outcomes, handler latency and sweeps
- Structured logging with owner/key context
"""

from newsletter_idempotency.observability.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from newsletter_idempotency.observability.metrics import (
    record_execution_time,
    record_request,
    record_sweep,
)

__all__ = [
    "bind_request_context",
    "clear_request_context",
    "configure_logging",
    "get_logger",
    "record_request",
    "record_execution_time",
    "record_sweep",
]
