"""Expiry sweeper for saved requests.

Saved requests are kept for a retention window (``max_age``) and then
deleted in bulk, whatever their state. A claim that crashed without
completing is reclaimed the same way.

The sweeper is an independent background task, decoupled from request
handling:
1. Runs one sweep through the store's atomic range delete
2. Reports metrics and logs
3. Waits ``interval_seconds`` on a stop event, then repeats
4. Exits only when the stop event is set

Deleting a key races nothing: once gone, the key is simply free for a new
claim, and the store's uniqueness applies to the new record.

Examples:
    Start the sweeper in the background::

        from newsletter_idempotency.core.cleanup import start_sweeper_task, stop_sweeper_task

        task = await start_sweeper_task(
            storage=storage,
            interval_seconds=300,
            max_age_seconds=86400,
        )

        # Later, when shutting down
        await stop_sweeper_task(task)

    Integrate with a FastAPI lifespan::

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            task = await start_sweeper_task(storage)
            yield
            await stop_sweeper_task(task)
"""

import asyncio
from datetime import UTC, datetime, timedelta

from newsletter_idempotency.observability.logging import get_logger
from newsletter_idempotency.observability.metrics import record_sweep
from newsletter_idempotency.storage.base import StorageAdapter

logger = get_logger(__name__)


async def delete_expired(
    storage: StorageAdapter,
    now: datetime,
    max_age: timedelta,
) -> int:
    """Delete every saved request created before ``now - max_age``.

    A record created exactly at the cutoff is kept.

    Args:
        storage: Saved-response store
        now: Reference time; naive values are read as UTC
        max_age: Retention window

    Returns:
        The number of records deleted

    Raises:
        PersistenceError: If the store cannot be reached
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    cutoff = now - max_age
    count = await storage.delete_expired(cutoff)
    record_sweep(count)
    return count


async def sweeper_loop(
    storage: StorageAdapter,
    interval_seconds: float = 300,
    max_age_seconds: int = 86400,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Background task that periodically deletes expired records.

    A failing sweep is logged and the loop carries on with the next
    interval.

    Args:
        storage: Saved-response store
        interval_seconds: Time between sweeps (default 300s = 5 minutes)
        max_age_seconds: Retention window (default 86400s = 24 hours)
        stop_event: Event signalling the loop to stop
    """
    if stop_event is None:
        stop_event = asyncio.Event()

    max_age = timedelta(seconds=max_age_seconds)

    logger.info(
        "sweeper.started",
        interval_seconds=interval_seconds,
        max_age_seconds=max_age_seconds,
    )

    while not stop_event.is_set():
        try:
            count = await delete_expired(storage, datetime.now(UTC), max_age)

            if count > 0:
                logger.info("sweeper.completed", records_removed=count)
            else:
                logger.debug("sweeper.completed", records_removed=0)

        except Exception as e:
            logger.error(
                "sweeper.failed",
                error=str(e),
                error_type=type(e).__name__,
            )

        # Wait for next interval or stop signal
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    logger.info("sweeper.stopped")


async def start_sweeper_task(
    storage: StorageAdapter,
    interval_seconds: float = 300,
    max_age_seconds: int = 86400,
) -> asyncio.Task[None]:
    """Start the sweeper as an asyncio task.

    The task's stop event is attached to it for ``stop_sweeper_task``.

    Returns:
        The asyncio Task running the sweeper loop
    """
    stop_event = asyncio.Event()

    task = asyncio.create_task(
        sweeper_loop(
            storage=storage,
            interval_seconds=interval_seconds,
            max_age_seconds=max_age_seconds,
            stop_event=stop_event,
        )
    )

    task._stop_event = stop_event  # type: ignore[attr-defined]

    return task


async def stop_sweeper_task(task: asyncio.Task[None], timeout: float = 5.0) -> None:
    """Stop a running sweeper task.

    Sets the stop event and waits for the loop to exit; cancels it if it
    does not stop within ``timeout`` seconds.
    """
    stop_event: asyncio.Event | None = getattr(task, "_stop_event", None)

    if stop_event:
        stop_event.set()

    try:
        await asyncio.wait_for(task, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("sweeper.stop_timeout", message="Sweeper did not stop in time")
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("sweeper.cancelled")
