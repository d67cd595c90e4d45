"""Unit tests for core models and type definitions.

This module tests:
- RequestState derivation
- ResponseSnapshot validation, immutability and row (de)serialization
- SavedRequestRecord validation
- ClaimOutcome variants
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from newsletter_idempotency.exceptions import ReplayMismatch
from newsletter_idempotency.key import IdempotencyKey
from newsletter_idempotency.models import (
    ProcessingInProgress,
    RequestState,
    ResponseSnapshot,
    ReturnSavedResponse,
    SavedRequestRecord,
    StartProcessing,
)


class TestResponseSnapshot:
    """Tests for ResponseSnapshot model."""

    def test_headers_keep_order_and_duplicates(self, snapshot: ResponseSnapshot) -> None:
        assert snapshot.headers == (
            ("content-type", "text/plain"),
            ("set-cookie", "a=1"),
            ("set-cookie", "b=2"),
        )

    def test_headers_accept_mapping(self) -> None:
        snapshot = ResponseSnapshot(status_code=200, headers={"x-a": "1"}, body=b"")
        assert snapshot.headers == (("x-a", "1"),)

    def test_defaults(self) -> None:
        snapshot = ResponseSnapshot(status_code=204)
        assert snapshot.headers == ()
        assert snapshot.body == b""

    @pytest.mark.parametrize("status_code", [99, 600, -1])
    def test_invalid_status_code_is_rejected(self, status_code: int) -> None:
        with pytest.raises(PydanticValidationError):
            ResponseSnapshot(status_code=status_code, headers=[], body=b"")

    def test_invalid_header_pair_is_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            ResponseSnapshot(status_code=200, headers=[("x-a", 1)], body=b"")

    def test_snapshot_is_immutable(self, snapshot: ResponseSnapshot) -> None:
        with pytest.raises(PydanticValidationError):
            snapshot.body = b"changed"  # type: ignore[misc]

    def test_to_row(self, snapshot: ResponseSnapshot) -> None:
        row = snapshot.to_row()
        assert row == {
            "response_status_code": 200,
            "response_headers": (
                '[["content-type","text/plain"],["set-cookie","a=1"],["set-cookie","b=2"]]'
            ),
            "response_body": b"OK",
        }

    def test_from_row_restores_the_exact_snapshot(self, snapshot: ResponseSnapshot) -> None:
        row = snapshot.to_row()
        restored = ResponseSnapshot.from_row(
            owner_id="U1",
            key="abc-123",
            status_code=row["response_status_code"],
            headers=row["response_headers"],
            body=row["response_body"],
        )
        assert restored == snapshot

    def test_from_row_accepts_memoryview_body(self) -> None:
        restored = ResponseSnapshot.from_row("U1", "k", 200, "[]", memoryview(b"\x00\xff"))
        assert restored.body == b"\x00\xff"

    @pytest.mark.parametrize(
        ("status_code", "headers", "body"),
        [
            (200, "not json", b""),
            (200, '{"a": "b"}', b""),
            (200, '[["only-name"]]', b""),
            (200, None, b""),
            (200, "[]", None),
            (999, "[]", b""),
        ],
    )
    def test_from_row_raises_replay_mismatch_on_corrupt_columns(
        self, status_code: int, headers: str, body: bytes
    ) -> None:
        with pytest.raises(ReplayMismatch) as exc_info:
            ResponseSnapshot.from_row("U1", "abc-123", status_code, headers, body)
        assert exc_info.value.owner_id == "U1"
        assert exc_info.value.key == "abc-123"


class TestSavedRequestRecord:
    """Tests for SavedRequestRecord model."""

    def test_record_without_response_is_processing(self, key: IdempotencyKey) -> None:
        record = SavedRequestRecord(owner_id="U1", key=key, created_at=datetime.now(UTC))
        assert record.state is RequestState.PROCESSING

    def test_record_with_response_is_completed(
        self, key: IdempotencyKey, snapshot: ResponseSnapshot
    ) -> None:
        record = SavedRequestRecord(
            owner_id="U1", key=key, response=snapshot, created_at=datetime.now(UTC)
        )
        assert record.state is RequestState.COMPLETED

    def test_naive_created_at_is_read_as_utc(self, key: IdempotencyKey) -> None:
        record = SavedRequestRecord(
            owner_id="U1", key=key, created_at=datetime(2026, 10, 19, 12, 0, 0)
        )
        assert record.created_at == datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)

    def test_aware_created_at_is_converted_to_utc(self, key: IdempotencyKey) -> None:
        paris = timezone(timedelta(hours=2))
        record = SavedRequestRecord(
            owner_id="U1", key=key, created_at=datetime(2026, 10, 19, 14, 0, tzinfo=paris)
        )
        assert record.created_at == datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
        assert record.created_at.tzinfo == UTC

    def test_empty_owner_is_rejected(self, key: IdempotencyKey) -> None:
        with pytest.raises(PydanticValidationError):
            SavedRequestRecord(owner_id="", key=key, created_at=datetime.now(UTC))


class TestClaimOutcome:
    """Tests for the claim outcome variants."""

    def test_variants_are_distinct_types(self, snapshot: ResponseSnapshot) -> None:
        outcomes = [
            StartProcessing(),
            ReturnSavedResponse(snapshot=snapshot),
            ProcessingInProgress(),
        ]
        assert len({type(outcome) for outcome in outcomes}) == 3

    def test_return_saved_response_carries_snapshot(self, snapshot: ResponseSnapshot) -> None:
        assert ReturnSavedResponse(snapshot=snapshot).snapshot == snapshot

    def test_processing_in_progress_created_at_is_optional(self) -> None:
        assert ProcessingInProgress().created_at is None
