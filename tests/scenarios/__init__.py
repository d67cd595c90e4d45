"""End-to-end scenarios for the idempotent-request core.

Each scenario drives a FastAPI application wrapped in
ASGIIdempotencyMiddleware through an in-process HTTP client and checks
one aspect of the behaviour seen by clients.
"""
