"""
Pytest configuration and shared fixtures for newsletter_idempotency tests.
"""

import pytest

from newsletter_idempotency.key import IdempotencyKey
from newsletter_idempotency.models import ResponseSnapshot
from newsletter_idempotency.storage.memory import MemoryStorageAdapter


@pytest.fixture
def owner_id() -> str:
    """Provide a sample owner identity for tests."""
    return "U1"


@pytest.fixture
def key() -> IdempotencyKey:
    """Provide a sample idempotency key for tests."""
    return IdempotencyKey.parse("abc-123")


@pytest.fixture
def snapshot() -> ResponseSnapshot:
    """Provide a sample saved response."""
    return ResponseSnapshot(
        status_code=200,
        headers=[
            ("content-type", "text/plain"),
            ("set-cookie", "a=1"),
            ("set-cookie", "b=2"),
        ],
        body=b"OK",
    )


@pytest.fixture
def storage() -> MemoryStorageAdapter:
    """Create a fresh memory storage adapter for each test."""
    return MemoryStorageAdapter()
