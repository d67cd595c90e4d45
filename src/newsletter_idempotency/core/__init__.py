"""Core logic of the idempotent-request subsystem.

- State machine: concurrency gate and response capture
  ((absent) -> PROCESSING -> COMPLETED)
- Replay: snapshot capture and verbatim response reconstruction
- Middleware: framework-agnostic request boundary
- Cleanup: expiry sweeper

The core is framework-agnostic and is wrapped by adapters for web
frameworks.
"""

from newsletter_idempotency.core.cleanup import (
    delete_expired,
    start_sweeper_task,
    stop_sweeper_task,
    sweeper_loop,
)
from newsletter_idempotency.core.middleware import IdempotencyMiddleware
from newsletter_idempotency.core.replay import ReplayedResponse, capture_response, replay_response
from newsletter_idempotency.core.state_machine import (
    StateResult,
    process_request,
    release_claim,
    save_response,
    try_start_processing,
    wait_for_completion,
)

__all__ = [
    "IdempotencyMiddleware",
    "ReplayedResponse",
    "StateResult",
    "capture_response",
    "delete_expired",
    "process_request",
    "release_claim",
    "replay_response",
    "save_response",
    "start_sweeper_task",
    "stop_sweeper_task",
    "sweeper_loop",
    "try_start_processing",
    "wait_for_completion",
]
