"""Saved-response stores.

This package provides the backends persisting saved requests. All adapters
implement the StorageAdapter protocol defined in base.py.

Available Adapters:
    - MemoryStorageAdapter: In-process store for a single server instance
    - SQLStorageAdapter: Relational store (SQLite, PostgreSQL) shared by
      any number of server instances
"""

from newsletter_idempotency.config import IdempotencyConfig
from newsletter_idempotency.storage.base import StorageAdapter
from newsletter_idempotency.storage.memory import MemoryStorageAdapter
from newsletter_idempotency.storage.sql import SQLStorageAdapter


def create_storage(config: IdempotencyConfig) -> StorageAdapter:
    """Build the store selected by ``config.storage_adapter``.

    The SQL adapter's schema is not created here; call
    ``SQLStorageAdapter.create_schema`` at startup when needed.
    """
    if config.storage_adapter == "sql":
        return SQLStorageAdapter.from_url(config.database_url)
    return MemoryStorageAdapter()


__all__ = [
    "StorageAdapter",
    "MemoryStorageAdapter",
    "SQLStorageAdapter",
    "create_storage",
]
