"""Idempotency key parsing.

Keys are supplied by the client (a form field or a request header) and end
up as part of the store's primary key, so they are validated once at the
boundary and carried around as an ``IdempotencyKey`` afterwards.

Examples:
    >>> key = IdempotencyKey.parse("abc-123")
    >>> key.value
    'abc-123'
    >>> IdempotencyKey.parse("")
    Traceback (most recent call last):
        ...
    newsletter_idempotency.exceptions.ValidationError: The idempotency key cannot be empty
"""

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from newsletter_idempotency.exceptions import ValidationError

MAX_KEY_LENGTH = 50


class IdempotencyKey(BaseModel):
    """A validated, immutable idempotency key.

    Equality and hashing are by exact string value. Use ``parse`` to build
    one from untrusted input.

    Attributes:
        value: The raw key, 1 to 50 characters, not normalised.
    """

    value: str = Field(
        ...,
        description="Client-supplied idempotency key",
        min_length=1,
        max_length=MAX_KEY_LENGTH,
        examples=["abc-123", "6f1c2a8e-9d4b-4a53-8e0e-0d7c3b1d9f2a"],
    )

    model_config = {"frozen": True, "strict": True}

    @classmethod
    def parse(cls, raw: str) -> "IdempotencyKey":
        """Validate a raw client value and wrap it.

        Args:
            raw: The value supplied by the client.

        Returns:
            The validated key.

        Raises:
            ValidationError: If ``raw`` is empty or longer than 50 characters.
        """
        if not raw:
            raise ValidationError("The idempotency key cannot be empty", raw_key=raw)
        if len(raw) > MAX_KEY_LENGTH:
            raise ValidationError(
                f"The idempotency key must be at most {MAX_KEY_LENGTH} characters long, "
                f"got {len(raw)}",
                raw_key=raw,
            )
        try:
            return cls(value=raw)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid idempotency key: {e}", raw_key=raw) from e

    def __str__(self) -> str:
        return self.value
