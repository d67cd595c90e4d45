"""Prometheus metrics for the idempotent-request core.

Metrics include:

- Request counter by outcome (executed, replayed, in_progress, invalid, error)
- Handler execution time histogram (fresh executions only)
- Claims currently held by this process
- Sweeper runs and swept records

Examples:
    Recording a replayed request::

        from newsletter_idempotency.observability.metrics import record_request

        record_request(result="replayed", status_code=200)

    Recording a sweep::

        record_sweep(records_removed=42)
"""

from prometheus_client import Counter, Gauge, Histogram

# Labels: result (executed, replayed, in_progress, invalid, error), status_code
requests_total = Counter(
    "idempotency_requests_total",
    "Total number of protected requests by outcome",
    ["result", "status_code"],
)

# Fresh executions only, replays are not timed
execution_time_seconds = Histogram(
    "idempotency_execution_time_seconds",
    "Protected handler execution time in seconds (fresh executions only)",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

active_claims = Gauge(
    "idempotency_active_claims",
    "Number of claims currently held by handlers of this process",
)

sweeps_total = Counter(
    "idempotency_sweeps_total",
    "Total number of expiry sweeps performed",
)

swept_records_total = Counter(
    "idempotency_swept_records_total",
    "Total number of expired records removed by the sweeper",
)


def record_request(result: str, status_code: int) -> None:
    """Record a protected request in metrics.

    Args:
        result: The outcome (executed, replayed, in_progress, invalid, error)
        status_code: HTTP status code of the response
    """
    requests_total.labels(result=result, status_code=str(status_code)).inc()


def record_execution_time(seconds: float) -> None:
    """Record handler execution time. Only call for fresh executions."""
    execution_time_seconds.observe(seconds)


def increment_active_claims() -> None:
    active_claims.inc()


def decrement_active_claims() -> None:
    active_claims.dec()


def record_sweep(records_removed: int) -> None:
    """Record one sweeper run.

    Args:
        records_removed: Number of expired records removed
    """
    sweeps_total.inc()
    swept_records_total.inc(records_removed)
