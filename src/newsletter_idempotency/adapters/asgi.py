"""ASGI middleware adapter for FastAPI and Starlette applications.

This module wraps the core idempotency boundary as Starlette middleware.

The middleware:
1. Skips methods outside ``config.enabled_methods`` and requests without
   an idempotency key header or without an authenticated owner
2. Runs the downstream application at most once per ``(owner, key)``
3. Converts the internal response back to a Starlette response, keeping
   raw header pairs so order and duplicates survive a replay

The owner identity comes from the authentication layer in front of this
middleware. By default it is read from ``config.owner_header``; pass an
``owner_resolver`` to read it from somewhere else (session, request state).

Examples:
    FastAPI integration::

        from fastapi import FastAPI
        from newsletter_idempotency.adapters.asgi import ASGIIdempotencyMiddleware
        from newsletter_idempotency.storage.memory import MemoryStorageAdapter

        app = FastAPI()
        app.add_middleware(
            ASGIIdempotencyMiddleware,
            storage=MemoryStorageAdapter(),
            owner_resolver=lambda request: request.session.get("user_id"),
        )

        @app.post("/admin/newsletters")
        async def publish_newsletter(...):
            # Runs at most once per (user, Idempotency-Key)
            ...
"""

from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response

from newsletter_idempotency.config import IdempotencyConfig
from newsletter_idempotency.core.middleware import IdempotencyMiddleware
from newsletter_idempotency.core.replay import ReplayedResponse
from newsletter_idempotency.storage.base import StorageAdapter

OwnerResolver = Callable[[StarletteRequest], str | None]


class ASGIIdempotencyMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for idempotency handling.

    Attributes:
        storage: Saved-response store
        config: Configuration object
        middleware: Core middleware instance
        owner_resolver: Callable returning the request's owner identity
    """

    def __init__(
        self,
        app: Any,
        storage: StorageAdapter,
        config: IdempotencyConfig | None = None,
        owner_resolver: OwnerResolver | None = None,
    ) -> None:
        """Initialize the ASGI middleware.

        Args:
            app: The ASGI application
            storage: Saved-response store
            config: Configuration object (uses defaults if not provided)
            owner_resolver: Owner lookup (defaults to ``config.owner_header``)
        """
        super().__init__(app)
        self.storage = storage
        self.config = config or IdempotencyConfig()
        self.middleware = IdempotencyMiddleware(storage, self.config)
        self.owner_resolver = owner_resolver or self._owner_from_header

    async def dispatch(
        self,
        request: StarletteRequest,
        call_next: Callable[[StarletteRequest], Awaitable[Response]],
    ) -> Response:
        """Process a request with idempotency handling."""
        if request.method.upper() not in self.config.enabled_methods:
            return await call_next(request)

        raw_key = request.headers.get(self.config.key_header)
        if raw_key is None:
            return await call_next(request)

        owner_id = self.owner_resolver(request)
        if not owner_id:
            return await call_next(request)

        async def handler() -> ReplayedResponse:
            response = await call_next(request)
            body = b""
            async for chunk in response.body_iterator:  # type: ignore[attr-defined]
                body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
            return ReplayedResponse(
                status=response.status_code,
                headers=[
                    (name.decode("latin-1"), value.decode("latin-1"))
                    for name, value in response.raw_headers
                ],
                body=body,
            )

        result = await self.middleware.process(str(owner_id), raw_key, handler)
        return self._convert_response(result)

    def _convert_response(self, response: ReplayedResponse) -> Response:
        """Convert an internal response to a Starlette Response.

        The raw header list is replaced wholesale so the saved pairs are
        sent exactly as captured.
        """
        converted = Response(content=response.body, status_code=response.status)
        converted.raw_headers = [
            (name.encode("latin-1"), value.encode("latin-1")) for name, value in response.headers
        ]
        return converted

    def _owner_from_header(self, request: StarletteRequest) -> str | None:
        return request.headers.get(self.config.owner_header)
