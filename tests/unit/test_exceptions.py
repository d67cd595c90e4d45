"""Unit tests for the exception hierarchy."""

import pytest

from newsletter_idempotency.exceptions import (
    ConcurrencyConflict,
    IdempotencyError,
    PersistenceError,
    ReplayMismatch,
    ValidationError,
)


class TestIdempotencyError:
    def test_message_attribute(self) -> None:
        error = IdempotencyError("Something failed")
        assert error.message == "Something failed"
        assert str(error) == "Something failed"

    @pytest.mark.parametrize(
        "error",
        [
            ValidationError("bad key"),
            ConcurrencyConflict("busy", owner_id="U1", key="abc-123"),
            PersistenceError("db down"),
            ReplayMismatch("corrupt", owner_id="U1", key="abc-123"),
        ],
    )
    def test_subclasses_are_catchable_as_base(self, error: IdempotencyError) -> None:
        with pytest.raises(IdempotencyError):
            raise error


class TestValidationError:
    def test_raw_key_defaults_to_none(self) -> None:
        assert ValidationError("bad key").raw_key is None

    def test_raw_key_is_kept(self) -> None:
        assert ValidationError("bad key", raw_key="x" * 51).raw_key == "x" * 51


class TestConcurrencyConflict:
    def test_attributes(self) -> None:
        error = ConcurrencyConflict("busy", owner_id="U1", key="abc-123", retry_after_seconds=2)
        assert error.owner_id == "U1"
        assert error.key == "abc-123"
        assert error.retry_after_seconds == 2

    def test_retry_after_default(self) -> None:
        assert ConcurrencyConflict("busy", owner_id="U1", key="k").retry_after_seconds == 5


class TestPersistenceError:
    def test_cause_is_kept(self) -> None:
        cause = ConnectionError("refused")
        error = PersistenceError("db down", cause=cause)
        assert error.cause is cause

    def test_chaining(self) -> None:
        cause = ConnectionError("refused")
        with pytest.raises(PersistenceError) as exc_info:
            try:
                raise cause
            except ConnectionError as e:
                raise PersistenceError(f"insert failed: {e}", cause=e) from e
        assert exc_info.value.__cause__ is cause


class TestReplayMismatch:
    def test_attributes(self) -> None:
        error = ReplayMismatch("corrupt", owner_id="U1", key="abc-123")
        assert error.owner_id == "U1"
        assert error.key == "abc-123"
        assert error.message == "corrupt"
