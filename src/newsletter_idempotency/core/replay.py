"""Response capture and replay.

The protected handler produces a ``ReplayedResponse``; capturing turns it
into an immutable ``ResponseSnapshot`` for the store, and replaying turns a
stored snapshot back into a ``ReplayedResponse``.

Replay is verbatim: status code, every header pair in its original order
(duplicates included) and the exact body bytes. Nothing is filtered and no
replay marker is added, so a retried request cannot be told apart from the
first one.

Examples:
    Round trip::

        response = ReplayedResponse(
            status=303,
            headers=[("location", "/admin/newsletters")],
            body=b"",
        )
        snapshot = capture_response(response)
        assert replay_response(snapshot) == response
"""

from collections.abc import Iterable, Mapping

from newsletter_idempotency.models import ResponseSnapshot
from newsletter_idempotency.utils.headers import HeaderPairs, to_header_pairs


class ReplayedResponse:
    """An HTTP-shaped response, fresh or replayed.

    Framework adapters convert their response objects into this format
    and back.

    Attributes:
        status: HTTP status code (e.g., 200, 303, 409)
        headers: Ordered header pairs
        body: Response body as bytes
    """

    def __init__(
        self,
        status: int,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None,
        body: bytes,
    ) -> None:
        """Initialize a response.

        Args:
            status: HTTP status code
            headers: Response headers as a mapping or as pairs
            body: Response body as bytes
        """
        self.status = status
        self.headers: HeaderPairs = to_header_pairs(headers)
        self.body = body

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReplayedResponse):
            return NotImplemented
        return (self.status, self.headers, self.body) == (other.status, other.headers, other.body)

    def __repr__(self) -> str:
        return f"ReplayedResponse(status={self.status}, headers={self.headers!r}, body={self.body!r})"


def capture_response(response: ReplayedResponse) -> ResponseSnapshot:
    """Freeze a handler's response into a snapshot."""
    return ResponseSnapshot(
        status_code=response.status,
        headers=response.headers,
        body=bytes(response.body),
    )


def replay_response(snapshot: ResponseSnapshot) -> ReplayedResponse:
    """Reconstruct the original response from a saved snapshot.

    Args:
        snapshot: The saved response

    Returns:
        ReplayedResponse with the exact status, headers and body
    """
    return ReplayedResponse(
        status=snapshot.status_code,
        headers=snapshot.headers,
        body=snapshot.body,
    )
