"""Core type definitions and models for the idempotent-request core.

This module provides the fundamental data structures used throughout the
system: the derived record state, the immutable response snapshot, the
saved-request record owned by the store, and the closed set of outcomes
returned by the concurrency gate.

Examples:
    Capturing a response::

        from newsletter_idempotency.models import ResponseSnapshot

        snapshot = ResponseSnapshot(
            status_code=303,
            headers=[("location", "/admin/newsletters")],
            body=b"",
        )

    Inspecting a record returned by a store::

        record = await storage.get("user-42", key)
        if record is not None and record.state is RequestState.COMPLETED:
            replay(record.response)

    Dispatching on a claim outcome::

        outcome = await try_start_processing(storage, owner_id, key)
        if isinstance(outcome, StartProcessing):
            ...
        elif isinstance(outcome, ReturnSavedResponse):
            return replay_response(outcome.snapshot)
        else:
            raise ConcurrencyConflict(...)
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from newsletter_idempotency.exceptions import ReplayMismatch
from newsletter_idempotency.key import IdempotencyKey
from newsletter_idempotency.utils.headers import (
    HeaderPairs,
    deserialize_header_pairs,
    serialize_header_pairs,
    to_header_pairs,
)


class RequestState(str, Enum):
    """State of a saved-request record.

    The state is never stored on its own: it is derived from whether the
    response columns are populated.

    Attributes:
        PROCESSING: A caller holds the claim and the handler has not finished.
        COMPLETED: The handler finished and its response snapshot is stored.
    """

    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"


class ResponseSnapshot(BaseModel):
    """An immutable capture of an HTTP-shaped response.

    Replaying a snapshot must reproduce the original response bit-exactly,
    so headers are kept as ordered ``(name, value)`` pairs (duplicates
    allowed) and the body as raw bytes.

    Attributes:
        status_code: HTTP status code (e.g., 200, 303, 400).
        headers: Ordered header pairs.
        body: Response body bytes.

    Examples:
        >>> snapshot = ResponseSnapshot(status_code=200, headers={}, body=b"OK")
        >>> snapshot.to_row()["response_status_code"]
        200
    """

    status_code: int = Field(
        ...,
        description="HTTP status code",
        ge=100,
        le=599,
        examples=[200, 303, 400, 500],
    )
    headers: HeaderPairs = Field(
        default=(),
        description="Ordered HTTP response header pairs",
        examples=[[["content-type", "text/html; charset=utf-8"]]],
    )
    body: bytes = Field(
        default=b"",
        description="Response body",
        examples=[b"OK"],
    )

    model_config = {"frozen": True}

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v: Any) -> HeaderPairs:
        """Accept a mapping or any iterable of pairs.

        Raises:
            ValueError: If an entry is not a pair of strings.
        """
        return to_header_pairs(v)

    def to_row(self) -> dict[str, Any]:
        """Serialise into the nullable response columns of the store."""
        return {
            "response_status_code": self.status_code,
            "response_headers": serialize_header_pairs(self.headers),
            "response_body": self.body,
        }

    @classmethod
    def from_row(
        cls,
        owner_id: str,
        key: str,
        status_code: int,
        headers: str,
        body: bytes,
    ) -> "ResponseSnapshot":
        """Rebuild a snapshot from stored response columns.

        Args:
            owner_id: Owner of the record, for error reporting.
            key: Idempotency key of the record, for error reporting.
            status_code: Stored status code.
            headers: Stored JSON header encoding.
            body: Stored body bytes.

        Returns:
            The decoded snapshot.

        Raises:
            ReplayMismatch: If any column cannot be decoded.
        """
        try:
            return cls(
                status_code=status_code,
                headers=deserialize_header_pairs(headers),
                body=bytes(body),
            )
        except (TypeError, ValueError) as e:
            raise ReplayMismatch(
                f"Saved response for key {key} cannot be decoded: {e}",
                owner_id=owner_id,
                key=key,
            ) from e


class SavedRequestRecord(BaseModel):
    """The store's unit of storage, unique per ``(owner_id, key)``.

    A record is Processing while ``response`` is None and Completed once
    a snapshot is attached. It is never partially populated.

    Attributes:
        owner_id: Opaque identity of the principal that sent the request.
        key: The idempotency key.
        response: The saved snapshot, None while processing.
        created_at: When the claim was taken (timezone-aware, UTC).
    """

    owner_id: str = Field(
        ...,
        description="Identity of the principal owning the key",
        min_length=1,
        examples=["3b7c1e0a-5f4d-4c55-9d38-1b0f7f0c2e11"],
    )
    key: IdempotencyKey
    response: ResponseSnapshot | None = Field(
        default=None,
        description="Saved response (set once COMPLETED)",
    )
    created_at: datetime = Field(
        ...,
        description="Timestamp when the claim was taken",
        examples=["2026-10-19T10:30:00Z"],
    )

    model_config = {"frozen": True}

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps (as returned by some SQL drivers) as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v.astimezone(UTC)

    @property
    def state(self) -> RequestState:
        """Processing or Completed, derived from the response."""
        if self.response is None:
            return RequestState.PROCESSING
        return RequestState.COMPLETED


class StartProcessing(BaseModel):
    """The caller won the claim and must run the handler.

    The holder must eventually save the handler's response or release the
    claim.
    """

    model_config = {"frozen": True}


class ReturnSavedResponse(BaseModel):
    """Another caller already completed this key.

    Attributes:
        snapshot: The saved response, to be replayed unchanged.
    """

    snapshot: ResponseSnapshot

    model_config = {"frozen": True}


class ProcessingInProgress(BaseModel):
    """Another claim for this key is in flight (or crashed and not yet swept).

    Attributes:
        created_at: When the in-flight claim was taken, if still visible.
    """

    created_at: datetime | None = None

    model_config = {"frozen": True}


ClaimOutcome = StartProcessing | ReturnSavedResponse | ProcessingInProgress
