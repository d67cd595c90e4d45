"""Framework adapters for the idempotent-request core.

- asgi.py: ASGI middleware for FastAPI, Starlette, etc.

The adapters convert between framework-specific request/response objects
and the core's internal representation.
"""

from newsletter_idempotency.adapters.asgi import ASGIIdempotencyMiddleware

__all__ = ["ASGIIdempotencyMiddleware"]
