"""Claim protocol for idempotent request processing.

This module implements the concurrency gate and the response capture of
the idempotent-request core. A saved request moves through:

    (absent) -> PROCESSING -> COMPLETED

The gate claims a key by inserting a Processing record through the store's
atomic insert-if-absent. The caller that inserts wins; everyone else reads
the existing record and either replays its snapshot or learns that
processing is still in flight. The record itself is the lock: nothing is
held in memory while the handler runs, so exclusivity holds across server
processes and survives crashes.

A crashed claim leaves its record in PROCESSING until the sweeper removes
it. A fresh attempt for that key keeps getting ``ProcessingInProgress``
until then; it is never silently re-executed.

Examples:
    Running the gate by hand::

        from newsletter_idempotency.core.state_machine import (
            save_response,
            try_start_processing,
        )

        outcome = await try_start_processing(storage, owner_id, key)
        if isinstance(outcome, StartProcessing):
            response = await publish_newsletter()
            await save_response(storage, owner_id, key, capture_response(response))
        elif isinstance(outcome, ReturnSavedResponse):
            response = replay_response(outcome.snapshot)

    Running the whole flow with a wait policy::

        result = await process_request(storage, owner_id, key, handler, config)
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from newsletter_idempotency.config import IdempotencyConfig
from newsletter_idempotency.core.replay import (
    ReplayedResponse,
    capture_response,
    replay_response,
)
from newsletter_idempotency.exceptions import (
    ConcurrencyConflict,
    PersistenceError,
    ValidationError,
)
from newsletter_idempotency.key import IdempotencyKey
from newsletter_idempotency.models import (
    ClaimOutcome,
    ProcessingInProgress,
    ResponseSnapshot,
    ReturnSavedResponse,
    StartProcessing,
)
from newsletter_idempotency.observability.logging import get_logger
from newsletter_idempotency.observability.metrics import (
    decrement_active_claims,
    increment_active_claims,
    record_execution_time,
)
from newsletter_idempotency.storage.base import StorageAdapter

logger = get_logger(__name__)


class StateResult:
    """Result of running a request through the claim protocol.

    Attributes:
        response: The response object (either fresh or replayed)
        was_replayed: True if the response came from a saved snapshot
        execution_time_ms: Handler execution time in milliseconds (None for replays)
    """

    def __init__(
        self,
        response: ReplayedResponse,
        was_replayed: bool,
        execution_time_ms: int | None = None,
    ) -> None:
        self.response = response
        self.was_replayed = was_replayed
        self.execution_time_ms = execution_time_ms


async def try_start_processing(
    storage: StorageAdapter,
    owner_id: str,
    key: IdempotencyKey,
    now: datetime | None = None,
) -> ClaimOutcome:
    """Try to claim the right to run the handler for ``(owner_id, key)``.

    The insert is the single source of truth: if it succeeds this caller is
    the only one holding the claim; if it fails someone else claimed first
    and no further check is made.

    Args:
        storage: Saved-response store
        owner_id: Identity of the acting principal
        key: Validated idempotency key
        now: Claim timestamp, defaults to the current UTC time

    Returns:
        StartProcessing if the claim was won, ReturnSavedResponse if the key
        already completed, ProcessingInProgress if it is still in flight.

    Raises:
        ValidationError: If ``owner_id`` is empty
        PersistenceError: If the store cannot be reached
        ReplayMismatch: If the saved snapshot cannot be decoded
    """
    if not owner_id:
        raise ValidationError("The owner identity cannot be empty")

    created_at = now if now is not None else datetime.now(UTC)

    if await storage.insert_processing(owner_id, key, created_at):
        logger.info("claim.started", owner_id=owner_id, key=key.value)
        return StartProcessing()

    record = await storage.get(owner_id, key)
    if record is None:
        # Swept or released between the insert and the read
        logger.info("claim.in_progress", owner_id=owner_id, key=key.value, record="vanished")
        return ProcessingInProgress()

    if record.response is not None:
        logger.info("claim.replayed", owner_id=owner_id, key=key.value)
        return ReturnSavedResponse(snapshot=record.response)

    logger.info(
        "claim.in_progress",
        owner_id=owner_id,
        key=key.value,
        claimed_at=record.created_at.isoformat(),
    )
    return ProcessingInProgress(created_at=record.created_at)


async def save_response(
    storage: StorageAdapter,
    owner_id: str,
    key: IdempotencyKey,
    response: ResponseSnapshot,
) -> None:
    """Complete a claim by attaching the handler's response.

    The caller must hold a ``StartProcessing`` claim for ``(owner_id, key)``.

    Raises:
        PersistenceError: If no Processing record exists for the key. This
            is a logic error (the claim was never taken) and is not retried.
    """
    if not await storage.complete(owner_id, key, response):
        raise PersistenceError(
            f"No processing record for key {key.value} of owner {owner_id}: "
            "save_response called without holding the claim"
        )
    logger.info(
        "response.saved",
        owner_id=owner_id,
        key=key.value,
        status_code=response.status_code,
    )


async def release_claim(storage: StorageAdapter, owner_id: str, key: IdempotencyKey) -> None:
    """Give a claim back after the handler failed.

    The Processing record is deleted so a later retry can claim the key
    again. Completed records are left untouched.
    """
    released = await storage.release(owner_id, key)
    logger.info("claim.released", owner_id=owner_id, key=key.value, released=released)


async def wait_for_completion(
    storage: StorageAdapter,
    owner_id: str,
    key: IdempotencyKey,
    timeout_seconds: float,
    poll_interval_ms: int,
    retry_after_seconds: int = 5,
) -> ResponseSnapshot:
    """Poll the store until an in-flight claim completes.

    The wait is bounded by ``timeout_seconds``; it never busy-loops.

    Returns:
        The snapshot saved by the claim holder.

    Raises:
        ConcurrencyConflict: If the ceiling is hit, or the record vanished
            because its holder released it or it was swept.
    """
    poll_interval = poll_interval_ms / 1000.0
    deadline = time.monotonic() + timeout_seconds

    while True:
        await asyncio.sleep(poll_interval)

        record = await storage.get(owner_id, key)
        if record is None:
            logger.info("wait.released", owner_id=owner_id, key=key.value)
            raise ConcurrencyConflict(
                f"Processing of key {key.value} stopped before completing",
                owner_id=owner_id,
                key=key.value,
                retry_after_seconds=retry_after_seconds,
            )

        if record.response is not None:
            return record.response

        if time.monotonic() >= deadline:
            logger.warning(
                "wait.timeout",
                owner_id=owner_id,
                key=key.value,
                timeout_seconds=timeout_seconds,
            )
            raise ConcurrencyConflict(
                f"Key {key.value} is still being processed after {timeout_seconds}s",
                owner_id=owner_id,
                key=key.value,
                retry_after_seconds=retry_after_seconds,
            )


async def process_request(
    storage: StorageAdapter,
    owner_id: str,
    key: IdempotencyKey,
    handler: Callable[[], Awaitable[ReplayedResponse]],
    config: IdempotencyConfig,
) -> StateResult:
    """Run a protected request through the claim protocol.

    Flow:
        1. Try to claim the key
        2. Claim won: execute the handler, save its response, return it
        3. Key completed: replay the saved response
        4. Key in flight: apply ``config.wait_policy``

    Args:
        storage: Saved-response store
        owner_id: Identity of the acting principal
        key: Validated idempotency key
        handler: Async callable producing the response
        config: Configuration object

    Returns:
        StateResult with the response and metadata

    Raises:
        ConcurrencyConflict: If the key is still in flight and the policy gives up
        PersistenceError: If the store fails
        ReplayMismatch: If a saved snapshot cannot be decoded
    """
    outcome = await try_start_processing(storage, owner_id, key)

    if isinstance(outcome, ReturnSavedResponse):
        return StateResult(
            response=replay_response(outcome.snapshot),
            was_replayed=True,
        )

    if isinstance(outcome, ProcessingInProgress):
        return await handle_in_progress(storage, owner_id, key, config)

    return await execute_claimed(storage, owner_id, key, handler)


async def execute_claimed(
    storage: StorageAdapter,
    owner_id: str,
    key: IdempotencyKey,
    handler: Callable[[], Awaitable[ReplayedResponse]],
) -> StateResult:
    """Run the handler while holding the claim, then complete it.

    If the handler raises, the claim is released and the exception
    propagates. If the task is cancelled, or the handler returns a response
    that cannot be saved (PersistenceError), the record stays Processing
    until swept.
    """
    increment_active_claims()
    start_time = time.perf_counter()
    try:
        try:
            response = await handler()
        except Exception:
            await release_claim(storage, owner_id, key)
            raise

        elapsed = time.perf_counter() - start_time
        record_execution_time(elapsed)

        try:
            snapshot = capture_response(response)
        except ValueError as e:
            # The handler already ran, so the claim is kept: releasing it
            # would let a retry run the side effects a second time.
            logger.error(
                "response.uncapturable",
                owner_id=owner_id,
                key=key.value,
                status=response.status,
            )
            raise PersistenceError(
                f"Handler response for key '{key.value}' cannot be saved", cause=e
            ) from e
        await save_response(storage, owner_id, key, snapshot)
    finally:
        decrement_active_claims()

    # Fresh responses go through the same path as replays so both are identical
    return StateResult(
        response=replay_response(snapshot),
        was_replayed=False,
        execution_time_ms=int(elapsed * 1000),
    )


async def handle_in_progress(
    storage: StorageAdapter,
    owner_id: str,
    key: IdempotencyKey,
    config: IdempotencyConfig,
) -> StateResult:
    """Handle a duplicate of a request that is still being processed.

    Behavior depends on ``config.wait_policy``:
    - "no-wait": raise ConcurrencyConflict immediately
    - "wait": poll every ``poll_interval_ms`` for at most
      ``execution_timeout_seconds``, then raise ConcurrencyConflict

    Raises:
        ConcurrencyConflict: When the policy gives up
    """
    if config.wait_policy == "no-wait":
        raise ConcurrencyConflict(
            f"Key {key.value} is currently being processed",
            owner_id=owner_id,
            key=key.value,
            retry_after_seconds=config.retry_after_seconds,
        )

    snapshot = await wait_for_completion(
        storage,
        owner_id,
        key,
        timeout_seconds=config.execution_timeout_seconds,
        poll_interval_ms=config.poll_interval_ms,
        retry_after_seconds=config.retry_after_seconds,
    )
    return StateResult(
        response=replay_response(snapshot),
        was_replayed=True,
    )
