"""Custom exceptions for the idempotent-request core.

This module defines the exception hierarchy used to signal the error
conditions of the claim protocol: malformed keys, in-flight duplicates,
storage failures and corrupted saved responses.

"Another caller is processing this key" is an expected outcome of the
concurrency gate and is modelled as a ``ClaimOutcome`` variant, not as an
exception. ``ConcurrencyConflict`` is only raised once a caller's wait policy
has decided to give up on that outcome.

Examples:
    Handling an in-flight duplicate::

        from newsletter_idempotency.exceptions import ConcurrencyConflict

        try:
            response = await middleware.execute(owner_id, raw_key, handler)
        except ConcurrencyConflict as e:
            logger.info("claim.in_progress", key=e.key)
            return Response(status_code=409, headers={"retry-after": "5"})

    Handling a storage failure::

        from newsletter_idempotency.exceptions import PersistenceError

        try:
            outcome = await try_start_processing(storage, owner_id, key)
        except PersistenceError as e:
            logger.error("storage.failed", error=str(e))
            raise
"""


class IdempotencyError(Exception):
    """Base exception for all idempotency-related errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class ValidationError(IdempotencyError):
    """The client supplied a malformed idempotency key.

    This is a client-input failure. It is surfaced to the caller as a
    400-class response and is never retried internally.

    Attributes:
        message: Human-readable error description.
        raw_key: The rejected raw value.
    """

    def __init__(self, message: str, raw_key: str | None = None) -> None:
        super().__init__(message)
        self.raw_key = raw_key


class ConcurrencyConflict(IdempotencyError):
    """Processing for this key is still in flight.

    Raised by the wait policy when a duplicate request finds the key in
    Processing state and either does not wait ("no-wait") or waited past
    the configured ceiling ("wait"). This is a transient condition: the
    client should retry later with the same key.

    Attributes:
        message: Human-readable error description.
        owner_id: Identity of the principal owning the key.
        key: The idempotency key value.
        retry_after_seconds: Suggested delay before the client retries.
    """

    def __init__(
        self,
        message: str,
        owner_id: str,
        key: str,
        retry_after_seconds: int = 5,
    ) -> None:
        """Initialize the conflict with details.

        Args:
            message: Human-readable error description.
            owner_id: Identity of the principal owning the key.
            key: The idempotency key value.
            retry_after_seconds: Suggested delay before the client retries.
        """
        super().__init__(message)
        self.owner_id = owner_id
        self.key = key
        self.retry_after_seconds = retry_after_seconds


class PersistenceError(IdempotencyError):
    """Storage backend operation failed.

    Raised when the store cannot be reached, when a completion write
    targets a record that does not exist, or when a handler response
    cannot be captured into a snapshot. The last two are logic errors and
    are fatal to the request.

    Callers recover from an unreachable store only by retrying the whole
    claim attempt; no partial state may be assumed.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception, if any.

    Examples:
        Wrapping a backend error::

            try:
                await conn.execute(stmt)
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to insert claim: {e}", cause=e) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the persistence error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.cause = cause


class ReplayMismatch(IdempotencyError):
    """A completed record holds a snapshot that cannot be decoded.

    The record is unusable for replay. It is logged and left for the
    sweeper (or an operator) to remove.

    Attributes:
        message: Human-readable error description.
        owner_id: Identity of the principal owning the key.
        key: The idempotency key value.
    """

    def __init__(self, message: str, owner_id: str, key: str) -> None:
        super().__init__(message)
        self.owner_id = owner_id
        self.key = key
