"""Framework-agnostic request boundary of the idempotent-request core.

The request-handling layer (routing, form parsing, authentication) hands
this module an ``(owner_id, raw_key, handler)`` triple and gets back an
HTTP-shaped response: either freshly produced by the handler or identical
to the response of the first execution.

The middleware:
1. Validates the raw idempotency key
2. Runs the claim protocol (state machine)
3. Maps idempotency errors to HTTP responses

Examples:
    Protecting a newsletter publication::

        middleware = IdempotencyMiddleware(storage, IdempotencyConfig())

        async def publish() -> ReplayedResponse:
            await outbox.enqueue(issue)
            return ReplayedResponse(303, [("location", "/admin/newsletters")], b"")

        response = await middleware.process(user_id, form["idempotency_key"], publish)
"""

from collections.abc import Awaitable, Callable

from newsletter_idempotency.config import IdempotencyConfig
from newsletter_idempotency.core.replay import ReplayedResponse
from newsletter_idempotency.core.state_machine import StateResult, process_request
from newsletter_idempotency.exceptions import (
    ConcurrencyConflict,
    IdempotencyError,
    ValidationError,
)
from newsletter_idempotency.key import IdempotencyKey
from newsletter_idempotency.observability.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
)
from newsletter_idempotency.observability.metrics import record_request
from newsletter_idempotency.storage.base import StorageAdapter

logger = get_logger(__name__)


class IdempotencyMiddleware:
    """Framework-agnostic idempotency boundary.

    Attributes:
        storage: Saved-response store
        config: Configuration object
    """

    def __init__(self, storage: StorageAdapter, config: IdempotencyConfig) -> None:
        self.storage = storage
        self.config = config

    async def execute(
        self,
        owner_id: str,
        raw_key: str,
        handler: Callable[[], Awaitable[ReplayedResponse]],
    ) -> StateResult:
        """Run ``handler`` at most once for ``(owner_id, raw_key)``.

        Idempotency errors propagate; use ``process`` to get them rendered
        as HTTP responses.

        Raises:
            ValidationError: If the key is malformed or the owner is empty
            ConcurrencyConflict: If the key is still in flight
            PersistenceError: If the store fails
            ReplayMismatch: If the saved response cannot be decoded
        """
        key = IdempotencyKey.parse(raw_key)

        bind_request_context(owner_id=owner_id, key=key.value)
        try:
            return await process_request(
                storage=self.storage,
                owner_id=owner_id,
                key=key,
                handler=handler,
                config=self.config,
            )
        finally:
            clear_request_context()

    async def process(
        self,
        owner_id: str,
        raw_key: str,
        handler: Callable[[], Awaitable[ReplayedResponse]],
    ) -> ReplayedResponse:
        """Run ``handler`` at most once and always return a response.

        Error mapping:
            - ValidationError: 400
            - ConcurrencyConflict: 409 with ``retry-after``
            - Other idempotency errors (PersistenceError, ReplayMismatch): 500

        Exceptions raised by the handler itself propagate unchanged.
        """
        try:
            result = await self.execute(owner_id, raw_key, handler)

        except ValidationError as e:
            logger.info("request.invalid", owner_id=owner_id, error=e.message)
            record_request("invalid", 400)
            return ReplayedResponse(
                status=400,
                headers=[("content-type", "text/plain; charset=utf-8")],
                body=f"Invalid request: {e.message}".encode(),
            )

        except ConcurrencyConflict as e:
            record_request("in_progress", 409)
            return ReplayedResponse(
                status=409,
                headers=[
                    ("content-type", "text/plain; charset=utf-8"),
                    ("retry-after", str(e.retry_after_seconds)),
                ],
                body=b"Request is currently being processed, retry later",
            )

        except IdempotencyError as e:
            logger.error(
                "idempotency.failed",
                owner_id=owner_id,
                error=e.message,
                error_type=type(e).__name__,
            )
            record_request("error", 500)
            return ReplayedResponse(
                status=500,
                headers=[("content-type", "text/plain; charset=utf-8")],
                body=b"Idempotency storage error",
            )

        result_label = "replayed" if result.was_replayed else "executed"
        record_request(result_label, result.response.status)
        return result.response
