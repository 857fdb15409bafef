"""
Transport protocol for Code Quill HTTP calls.

Defines the seam where the HTTP implementation plugs in. The client
depends on this protocol, not on httpx directly, so tests can hand in a
fake that returns canned exchanges.

Concrete implementations:
    - HttpxTransport (default, uses httpx.AsyncClient)
    - FakeTransport (tests, returns canned responses)

Unlike a JSON-RPC transport, non-2xx replies are NOT raised: the status
code, reason phrase, full body text and (if decodable) the JSON object are
handed back together so callers can build precise messages. Only failures
that never produce a reply (DNS, connect, TLS, timeout) raise, as
``httpx.HTTPError``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx

# Credential header understood by the Code Quill API.
API_KEY_HEADER = "X-CodeQuill-Repo-Key"

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class HttpResponse:
    """One fully-read HTTP exchange.

    Attributes:
        status_code: HTTP status code.
        reason_phrase: HTTP reason phrase ("OK", "Unprocessable Entity"...).
        text: Full response body as text. Kept even when not JSON so error
            messages can show what the server actually said.
        data: Decoded JSON object, or None if the body was empty, not JSON,
            or JSON that is not an object.
    """

    status_code: int
    reason_phrase: str = ""
    text: str = ""
    data: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        """True for 2xx statuses."""
        return 200 <= self.status_code < 300

    @classmethod
    def from_text(cls, status_code: int, reason_phrase: str, text: str) -> HttpResponse:
        return cls(
            status_code=status_code,
            reason_phrase=reason_phrase,
            text=text,
            data=parse_json_object(text),
        )


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Decode a JSON object body. Anything else is "no structured data"."""
    if not text:
        return None
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(decoded, dict):
        return None
    return decoded


@runtime_checkable
class SnapshotTransport(Protocol):
    """Async transport for authenticated JSON POST requests."""

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> HttpResponse:
        """POST a JSON payload and return the fully-read reply.

        Args:
            url: Target URL.
            payload: JSON request body.
            headers: Extra headers (credential, etc.).

        Returns:
            HttpResponse for any HTTP status.

        Raises:
            httpx.HTTPError: When no HTTP reply was received.
        """
        ...


class HttpxTransport:
    """Default transport using httpx.AsyncClient.

    Opens a fresh client per call; one run makes a handful of sequential
    requests, never concurrent ones.

    Args:
        timeout: Per-request timeout in seconds.
        mock_transport: Optional httpx transport (e.g. ``httpx.MockTransport``)
            passed through to the client.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        mock_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._mock_transport = mock_transport

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> HttpResponse:
        """Send the request via httpx and read the body to completion."""
        async with httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._mock_transport,
        ) as client:
            response = await client.post(
                url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    **headers,
                },
            )
            return HttpResponse.from_text(
                response.status_code,
                response.reason_phrase,
                response.text,
            )
