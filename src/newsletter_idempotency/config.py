"""Configuration module for the idempotent-request core.

This module provides the IdempotencyConfig class for configuring which
requests are protected, how duplicates of an in-flight request are treated,
how long saved responses are retained, and which store backs the system.

Example:
    Basic usage with defaults:

        >>> config = IdempotencyConfig()
        >>> config.enabled_methods
        ['POST', 'PUT', 'PATCH', 'DELETE']
        >>> config.retention_seconds
        86400

    Custom configuration:

        >>> config = IdempotencyConfig(
        ...     wait_policy="no-wait",
        ...     retention_seconds=3600,
        ...     storage_adapter="sql",
        ...     database_url="postgresql+asyncpg://app@db/newsletter",
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['IDEMPOTENCY_WAIT_POLICY'] = 'no-wait'
        >>> os.environ['IDEMPOTENCY_RETENTION_SECONDS'] = '3600'
        >>> config = IdempotencyConfig.from_env()
"""

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# Valid HTTP methods for idempotency
VALID_HTTP_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "CONNECT",
    "OPTIONS",
    "TRACE",
    "PATCH",
}


class IdempotencyConfig(BaseModel):
    """Configuration for the idempotent-request core.

    Attributes:
        enabled_methods: HTTP methods protected by the ASGI adapter. Default
            includes all state-changing methods: POST, PUT, PATCH, DELETE.
        key_header: Request header carrying the idempotency key.
        owner_header: Request header carrying the authenticated principal's
            identity, as set by the upstream authentication layer.
        wait_policy: What a duplicate does when the key is still processing.
            "wait" polls the store until the first request completes (bounded
            by execution_timeout_seconds); "no-wait" answers 409 immediately.
        execution_timeout_seconds: Ceiling on the "wait" policy, 1 to 300.
        poll_interval_ms: Delay between store reads under "wait", 10 to 5000.
        retry_after_seconds: Value of the retry-after header sent with 409.
        retention_seconds: Age after which records are swept, 1 to 604800
            (7 days). Default is 86400 (24 hours).
        sweep_interval_seconds: Delay between two sweeps of the background
            sweeper. Default is 300 (5 minutes).
        storage_adapter: "memory" (single process) or "sql".
        database_url: SQLAlchemy async URL used by the "sql" adapter.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    enabled_methods: list[str] | str = Field(
        default=["POST", "PUT", "PATCH", "DELETE"],
        description="List of HTTP methods that require idempotency checks",
    )
    key_header: str = Field(
        default="Idempotency-Key",
        description="Request header carrying the idempotency key",
    )
    owner_header: str = Field(
        default="X-User-Id",
        description="Request header carrying the authenticated principal id",
    )
    wait_policy: Literal["wait", "no-wait"] = Field(
        default="wait",
        description="Policy for duplicates of an in-flight request: 'wait' or 'no-wait'",
    )
    execution_timeout_seconds: int = Field(
        default=30,
        description="Maximum time in seconds to wait for an in-flight request (1-300)",
    )
    poll_interval_ms: int = Field(
        default=100,
        description="Interval between store reads while waiting (10-5000)",
    )
    retry_after_seconds: int = Field(
        default=5,
        description="Retry-After value for in-flight duplicates",
    )
    retention_seconds: int = Field(
        default=86400,
        description="Age in seconds after which saved requests are swept (1-604800)",
    )
    sweep_interval_seconds: int = Field(
        default=300,
        description="Seconds between two runs of the expiry sweeper",
    )
    storage_adapter: Literal["memory", "sql"] = Field(
        default="memory",
        description="Type of storage backend for saved requests",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./idempotency.db",
        description="SQLAlchemy async database URL for the sql adapter",
    )

    model_config = {"frozen": True}

    @field_validator("enabled_methods", mode="before")
    @classmethod
    def validate_enabled_methods(cls, v: Any) -> list[str]:
        """Uppercase the protected methods and reject unknown ones.

        Accepts a list or, as read from the environment, a comma-separated
        string such as ``"POST,PUT"``.

        Raises:
            ValueError: If a method is not a known HTTP method.
        """
        if isinstance(v, str):
            v = [part.strip() for part in v.split(",") if part.strip()]

        if not isinstance(v, (list, tuple)):
            raise ValueError("enabled_methods expects a list or a comma-separated string")

        methods = [str(m).upper() for m in v]

        unknown = sorted(set(methods) - VALID_HTTP_METHODS)
        if unknown:
            raise ValueError(
                f"Unknown HTTP method(s) {', '.join(unknown)}; "
                f"expected any of {', '.join(sorted(VALID_HTTP_METHODS))}"
            )

        return methods

    @field_validator("key_header", "owner_header")
    @classmethod
    def validate_header_name(cls, v: str) -> str:
        """Reject empty header names."""
        if not v.strip():
            raise ValueError("header names cannot be empty")
        return v.strip()

    @field_validator("execution_timeout_seconds")
    @classmethod
    def validate_execution_timeout_seconds(cls, v: int) -> int:
        """Validate execution timeout is within acceptable range.

        Raises:
            ValueError: If timeout is not between 1 and 300 (5 minutes).
        """
        if not (1 <= v <= 300):
            raise ValueError(
                f"execution_timeout_seconds must be between 1 and 300 (5 minutes), got {v}"
            )
        return v

    @field_validator("poll_interval_ms")
    @classmethod
    def validate_poll_interval_ms(cls, v: int) -> int:
        if not (10 <= v <= 5000):
            raise ValueError(f"poll_interval_ms must be between 10 and 5000, got {v}")
        return v

    @field_validator("retry_after_seconds", "sweep_interval_seconds")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be >= 1, got {v}")
        return v

    @field_validator("retention_seconds")
    @classmethod
    def validate_retention_seconds(cls, v: int) -> int:
        """Validate retention is within acceptable range.

        Raises:
            ValueError: If retention is not between 1 and 604800 (7 days).
        """
        if not (1 <= v <= 604800):
            raise ValueError(f"retention_seconds must be between 1 and 604800 (7 days), got {v}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "IDEMPOTENCY_") -> "IdempotencyConfig":
        """Create configuration from environment variables.

        Variable names are uppercase field names with the prefix, e.g.
        ``IDEMPOTENCY_WAIT_POLICY``. Missing variables keep their defaults.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            IdempotencyConfig instance populated from environment variables.
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "enabled_methods": list,
            "key_header": str,
            "owner_header": str,
            "wait_policy": str,
            "execution_timeout_seconds": int,
            "poll_interval_ms": int,
            "retry_after_seconds": int,
            "retention_seconds": int,
            "sweep_interval_seconds": int,
            "storage_adapter": str,
            "database_url": str,
        }

        for field_name, field_type in field_types.items():
            env_value = os.environ.get(f"{prefix}{field_name.upper()}")
            if env_value is None:
                continue
            if field_type is int:
                config_dict[field_name] = int(env_value)
            else:
                config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "IdempotencyConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)
