"""In-memory saved-response store.

This module provides an in-process implementation of the StorageAdapter
interface. Each operation runs under a single ``threading.Lock`` with no
await inside the critical section, so every operation is atomic with
respect to other tasks and threads of the same process.

The MemoryStorageAdapter is suitable for:
    - Single-process applications
    - Development and testing

It gives no exclusivity across processes; use SQLStorageAdapter when
several server instances share the load.

Examples:
    Basic usage::

        from datetime import UTC, datetime
        from newsletter_idempotency.storage.memory import MemoryStorageAdapter

        adapter = MemoryStorageAdapter()
        key = IdempotencyKey.parse("abc-123")

        if await adapter.insert_processing("user-1", key, datetime.now(UTC)):
            await adapter.complete("user-1", key, snapshot)

    Concurrent duplicate handling::

        results = await asyncio.gather(
            adapter.insert_processing("user-1", key, now),
            adapter.insert_processing("user-1", key, now),
        )
        assert sorted(results) == [False, True]
"""

import threading
from datetime import datetime

from newsletter_idempotency.key import IdempotencyKey
from newsletter_idempotency.models import ResponseSnapshot, SavedRequestRecord
from newsletter_idempotency.storage.base import StorageAdapter


class MemoryStorageAdapter(StorageAdapter):
    """In-memory store keyed by ``(owner_id, key)``.

    Records are immutable; a completion replaces the Processing record with
    a Completed copy.

    Attributes:
        _store: Dictionary mapping ``(owner_id, key value)`` to records.
        _lock: Lock making each read-modify-write atomic.
    """

    def __init__(self) -> None:
        self._store: dict[tuple[str, str], SavedRequestRecord] = {}
        self._lock = threading.Lock()

    async def insert_processing(
        self,
        owner_id: str,
        key: IdempotencyKey,
        created_at: datetime,
    ) -> bool:
        """Insert a Processing record unless one already exists.

        Returns:
            True if the record was inserted, False if the key was taken.
        """
        record = SavedRequestRecord(
            owner_id=owner_id,
            key=key,
            response=None,
            created_at=created_at,
        )
        with self._lock:
            if (owner_id, key.value) in self._store:
                return False
            self._store[(owner_id, key.value)] = record
            return True

    async def get(self, owner_id: str, key: IdempotencyKey) -> SavedRequestRecord | None:
        with self._lock:
            return self._store.get((owner_id, key.value))

    async def complete(
        self,
        owner_id: str,
        key: IdempotencyKey,
        response: ResponseSnapshot,
    ) -> bool:
        """Attach the snapshot to a Processing record.

        Returns:
            True if the record was updated, False if it is missing or
            already Completed.
        """
        with self._lock:
            record = self._store.get((owner_id, key.value))
            if record is None or record.response is not None:
                return False
            self._store[(owner_id, key.value)] = record.model_copy(update={"response": response})
            return True

    async def release(self, owner_id: str, key: IdempotencyKey) -> bool:
        with self._lock:
            record = self._store.get((owner_id, key.value))
            if record is None or record.response is not None:
                return False
            del self._store[(owner_id, key.value)]
            return True

    async def delete_expired(self, cutoff: datetime) -> int:
        """Remove every record created strictly before ``cutoff``.

        Returns:
            The number of records removed.
        """
        with self._lock:
            expired = [
                store_key
                for store_key, record in self._store.items()
                if record.created_at < cutoff
            ]
            for store_key in expired:
                del self._store[store_key]
            return len(expired)

    async def count(self) -> int:
        with self._lock:
            return len(self._store)
