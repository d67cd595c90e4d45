"""Utility modules for the idempotent-request core."""

from .headers import (
    HeaderPairs,
    deserialize_header_pairs,
    serialize_header_pairs,
    to_header_pairs,
)

__all__ = [
    "HeaderPairs",
    "deserialize_header_pairs",
    "serialize_header_pairs",
    "to_header_pairs",
]
