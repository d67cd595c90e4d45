"""Storage adapter protocol for the saved-response store.

This module defines the interface every saved-response store must
implement. The store is the only shared mutable resource of the system:
mutual exclusion between concurrent attempts with the same key comes from
its atomic insert-if-absent on ``(owner_id, key)``, never from an
in-process lock, so the protocol holds across several server processes
sharing one store.

Examples:
    Claiming, then completing a key::

        claimed = await storage.insert_processing(owner_id, key, created_at=now)
        if claimed:
            snapshot = await run_handler()
            await storage.complete(owner_id, key, snapshot)
        else:
            record = await storage.get(owner_id, key)

Atomicity Requirements:
    All StorageAdapter implementations MUST guarantee:

    1. **Atomic claim**: insert_processing() either inserts a new Processing
       record or reports that one already exists. Exactly one concurrent
       caller per ``(owner_id, key)`` gets True.

    2. **Conditional completion**: complete() attaches a snapshot only to an
       existing record that is still Processing, in one operation.

    3. **Conditional release**: release() deletes only a Processing record.
       A Completed record is never released.

    4. **Atomic range delete**: delete_expired() removes every record older
       than the cutoff, regardless of state, in one operation.

    5. **No partial transitions**: a failing call leaves the record in its
       pre-call state.

Error Handling:
    Methods raise PersistenceError for backend failures and ReplayMismatch
    when a stored snapshot cannot be decoded. Backend-specific exceptions
    are never raised directly.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable

from newsletter_idempotency.key import IdempotencyKey
from newsletter_idempotency.models import ResponseSnapshot, SavedRequestRecord


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol defining the interface for saved-response stores.

    All methods are async and must be safe to call concurrently from
    multiple asyncio tasks. Adapters meant for multi-instance deployments
    must also be safe across processes.
    """

    async def insert_processing(
        self,
        owner_id: str,
        key: IdempotencyKey,
        created_at: datetime,
    ) -> bool:
        """Atomically insert a Processing record if none exists.

        Args:
            owner_id: Identity of the principal owning the key.
            key: The idempotency key.
            created_at: Claim timestamp (timezone-aware UTC).

        Returns:
            True if this call inserted the record, False if a record for
            ``(owner_id, key)`` already existed.
        """
        ...

    async def get(self, owner_id: str, key: IdempotencyKey) -> SavedRequestRecord | None:
        """Retrieve the record for ``(owner_id, key)``.

        Returns:
            The record if found, None otherwise.

        Raises:
            ReplayMismatch: If a Completed record cannot be decoded.
        """
        ...

    async def complete(
        self,
        owner_id: str,
        key: IdempotencyKey,
        response: ResponseSnapshot,
    ) -> bool:
        """Transition a Processing record to Completed.

        Returns:
            True if the record was updated, False if no Processing record
            exists for ``(owner_id, key)``.
        """
        ...

    async def release(self, owner_id: str, key: IdempotencyKey) -> bool:
        """Delete a Processing record so the key can be claimed again.

        Returns:
            True if a Processing record was deleted, False otherwise.
        """
        ...

    async def delete_expired(self, cutoff: datetime) -> int:
        """Delete every record with ``created_at < cutoff``.

        Returns:
            The number of records removed.
        """
        ...

    async def count(self) -> int:
        """Return the number of stored records, in any state."""
        ...
