"""SQL saved-response store built on SQLAlchemy's asyncio extension.

One row per ``(owner_id, idempotency_key)``. The composite primary key is
the mutual-exclusion mechanism: a concurrent duplicate insert fails with
an IntegrityError, in this process or any other process sharing the
database. Nullability of the response columns is the Processing/Completed
discriminator.

Table layout::

    idempotency
        owner_id              VARCHAR(255)  PK
        idempotency_key       VARCHAR(50)   PK
        response_status_code  SMALLINT      NULL
        response_headers      TEXT          NULL  -- JSON [[name, value], ...]
        response_body         BLOB/BYTEA    NULL
        created_at            TIMESTAMP WITH TIME ZONE NOT NULL

Examples:
    Using SQLite for development::

        from newsletter_idempotency.storage.sql import SQLStorageAdapter

        storage = SQLStorageAdapter.from_url("sqlite+aiosqlite:///./idempotency.db")
        await storage.create_schema()

    Using PostgreSQL in production::

        storage = SQLStorageAdapter.from_url(
            "postgresql+asyncpg://app:secret@db/newsletter",
            pool_size=10,
        )
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    LargeBinary,
    MetaData,
    SmallInteger,
    String,
    Table,
    Text,
    and_,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from newsletter_idempotency.exceptions import PersistenceError, ReplayMismatch
from newsletter_idempotency.key import MAX_KEY_LENGTH, IdempotencyKey
from newsletter_idempotency.models import ResponseSnapshot, SavedRequestRecord
from newsletter_idempotency.observability.logging import get_logger
from newsletter_idempotency.storage.base import StorageAdapter

logger = get_logger(__name__)

metadata = MetaData()

idempotency_table = Table(
    "idempotency",
    metadata,
    Column("owner_id", String(255), primary_key=True),
    Column("idempotency_key", String(MAX_KEY_LENGTH), primary_key=True),
    Column("response_status_code", SmallInteger, nullable=True),
    Column("response_headers", Text, nullable=True),
    Column("response_body", LargeBinary, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_idempotency_created_at", "created_at"),
)


class SQLStorageAdapter(StorageAdapter):
    """Saved-response store backed by a relational database.

    Every method runs in its own short transaction; no transaction is held
    while the protected handler executes.

    Attributes:
        engine: The SQLAlchemy async engine.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str, **engine_kwargs: Any) -> "SQLStorageAdapter":
        """Create an adapter with its own engine.

        Args:
            database_url: SQLAlchemy async URL (``sqlite+aiosqlite://...``,
                ``postgresql+asyncpg://...``).
            **engine_kwargs: Extra arguments for ``create_async_engine``.
        """
        return cls(create_async_engine(database_url, **engine_kwargs))

    async def create_schema(self) -> None:
        """Create the ``idempotency`` table and its index if missing."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create idempotency schema: {e}", cause=e) from e

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()

    def _match(self, owner_id: str, key: IdempotencyKey) -> Any:
        return and_(
            idempotency_table.c.owner_id == owner_id,
            idempotency_table.c.idempotency_key == key.value,
        )

    async def insert_processing(
        self,
        owner_id: str,
        key: IdempotencyKey,
        created_at: datetime,
    ) -> bool:
        """Insert a Processing row; a primary-key violation means the key is taken.

        Raises:
            PersistenceError: If the database cannot be reached.
        """
        stmt = insert(idempotency_table).values(
            owner_id=owner_id,
            idempotency_key=key.value,
            created_at=created_at.astimezone(UTC),
        )
        try:
            async with self.engine.begin() as conn:
                await conn.execute(stmt)
        except IntegrityError:
            return False
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to insert claim for key {key}: {e}", cause=e) from e
        return True

    async def get(self, owner_id: str, key: IdempotencyKey) -> SavedRequestRecord | None:
        """Read the row for ``(owner_id, key)``.

        Raises:
            PersistenceError: If the database cannot be reached.
            ReplayMismatch: If the saved response columns cannot be decoded.
        """
        stmt = select(
            idempotency_table.c.response_status_code,
            idempotency_table.c.response_headers,
            idempotency_table.c.response_body,
            idempotency_table.c.created_at,
        ).where(self._match(owner_id, key))
        try:
            async with self.engine.connect() as conn:
                row = (await conn.execute(stmt)).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read key {key}: {e}", cause=e) from e

        if row is None:
            return None

        response = None
        if row.response_status_code is not None:
            try:
                response = ResponseSnapshot.from_row(
                    owner_id=owner_id,
                    key=key.value,
                    status_code=row.response_status_code,
                    headers=row.response_headers,
                    body=row.response_body,
                )
            except ReplayMismatch as e:
                logger.error(
                    "replay.mismatch",
                    owner_id=owner_id,
                    key=key.value,
                    error=e.message,
                )
                raise

        return SavedRequestRecord(
            owner_id=owner_id,
            key=key,
            response=response,
            created_at=row.created_at,
        )

    async def complete(
        self,
        owner_id: str,
        key: IdempotencyKey,
        response: ResponseSnapshot,
    ) -> bool:
        stmt = (
            update(idempotency_table)
            .where(self._match(owner_id, key))
            .where(idempotency_table.c.response_status_code.is_(None))
            .values(**response.to_row())
        )
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save response for key {key}: {e}", cause=e) from e
        return result.rowcount == 1

    async def release(self, owner_id: str, key: IdempotencyKey) -> bool:
        stmt = (
            delete(idempotency_table)
            .where(self._match(owner_id, key))
            .where(idempotency_table.c.response_status_code.is_(None))
        )
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to release claim for key {key}: {e}", cause=e) from e
        return result.rowcount == 1

    async def delete_expired(self, cutoff: datetime) -> int:
        """Delete every row created strictly before ``cutoff`` in one statement."""
        stmt = delete(idempotency_table).where(
            idempotency_table.c.created_at < cutoff.astimezone(UTC)
        )
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete expired records: {e}", cause=e) from e
        return result.rowcount

    async def count(self) -> int:
        stmt = select(func.count()).select_from(idempotency_table)
        try:
            async with self.engine.connect() as conn:
                return (await conn.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count records: {e}", cause=e) from e
