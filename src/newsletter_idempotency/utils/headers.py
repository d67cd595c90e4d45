"""Header pair utilities for the idempotent-request core.

Saved responses keep their headers as an ordered sequence of
``(name, value)`` pairs so that duplicate headers (``set-cookie``) and the
original ordering survive a replay. This module provides:

- Normalisation of the shapes frameworks hand us into that sequence
- A JSON codec for the ``response_headers`` storage column
"""

import json
from collections.abc import Iterable, Mapping

HeaderPairs = tuple[tuple[str, str], ...]


def to_header_pairs(
    headers: Mapping[str, str] | Iterable[tuple[str, str]] | None,
) -> HeaderPairs:
    """Normalise headers into an immutable sequence of pairs.

    Args:
        headers: A mapping, an iterable of pairs, or None.

    Returns:
        Tuple of ``(name, value)`` tuples in the original order.

    Raises:
        ValueError: If a pair does not consist of two strings.

    Example:
        >>> to_header_pairs({"content-type": "text/plain"})
        (('content-type', 'text/plain'),)
        >>> to_header_pairs([("set-cookie", "a=1"), ("set-cookie", "b=2")])
        (('set-cookie', 'a=1'), ('set-cookie', 'b=2'))
    """
    if headers is None:
        return ()

    items = headers.items() if isinstance(headers, Mapping) else headers

    pairs: list[tuple[str, str]] = []
    for item in items:
        name, value = item
        if not isinstance(name, str) or not isinstance(value, str):
            raise ValueError(f"Header pair must be (str, str), got {item!r}")
        pairs.append((name, value))
    return tuple(pairs)


def serialize_header_pairs(headers: HeaderPairs) -> str:
    """Encode header pairs for the ``response_headers`` column.

    The encoding is a JSON array of two-element arrays, which keeps order
    and duplicates.

    Example:
        >>> serialize_header_pairs((("content-type", "text/plain"),))
        '[["content-type","text/plain"]]'
    """
    return json.dumps([[name, value] for name, value in headers], separators=(",", ":"))


def deserialize_header_pairs(raw: str) -> HeaderPairs:
    """Decode the ``response_headers`` column back into header pairs.

    Args:
        raw: JSON produced by ``serialize_header_pairs``.

    Returns:
        Tuple of ``(name, value)`` tuples.

    Raises:
        ValueError: If the payload is not a JSON array of string pairs.
    """
    try:
        decoded = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid header encoding: {e}") from e

    if not isinstance(decoded, list):
        raise ValueError("Header encoding must be a JSON array")

    pairs: list[tuple[str, str]] = []
    for entry in decoded:
        if (
            not isinstance(entry, list)
            or len(entry) != 2
            or not all(isinstance(part, str) for part in entry)
        ):
            raise ValueError(f"Invalid header pair: {entry!r}")
        pairs.append((entry[0], entry[1]))
    return tuple(pairs)

