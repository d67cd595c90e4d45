"""
Idempotent request handling for the newsletter backend.

This package lets clients safely retry state-changing requests (publishing
a newsletter issue) with an idempotency key: the protected handler runs at
most once per ``(owner, key)`` and every retry gets the recorded response
back, even when retries race across server processes.
"""

__version__ = "0.1.0"

from newsletter_idempotency.config import IdempotencyConfig
from newsletter_idempotency.core.middleware import IdempotencyMiddleware
from newsletter_idempotency.core.replay import ReplayedResponse
from newsletter_idempotency.key import IdempotencyKey
from newsletter_idempotency.models import (
    ClaimOutcome,
    ProcessingInProgress,
    ResponseSnapshot,
    ReturnSavedResponse,
    StartProcessing,
)

__all__ = [
    "__version__",
    "ClaimOutcome",
    "IdempotencyConfig",
    "IdempotencyKey",
    "IdempotencyMiddleware",
    "ProcessingInProgress",
    "ReplayedResponse",
    "ResponseSnapshot",
    "ReturnSavedResponse",
    "StartProcessing",
]
