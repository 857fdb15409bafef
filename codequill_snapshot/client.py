"""
Code Quill client — the network boundary plus reply parsing.

``SnapshotClient`` sends the two calls (submit, status) through an
injectable ``SnapshotTransport`` and returns raw ``HttpResponse`` objects.
Interpretation lives in pure functions so it can be tested without any
transport at all:

    - ``parse_submission(response) -> SubmissionResult``
    - ``parse_status(response) -> PollOutcome``

Reply bodies are loosely typed on the wire. They are read into
``SubmitReply`` / ``StatusReply``: every field optional and named, unknown
keys ignored, wrong-typed values dropped.

No retry loops here. No sleeping. No secrets in return values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from codequill_snapshot.errors import (
    EmptyResponse,
    NoTransactionId,
    SubmissionRejected,
    TransientPollError,
)
from codequill_snapshot.request import SnapshotRequest
from codequill_snapshot.transport import (
    API_KEY_HEADER,
    HttpResponse,
    HttpxTransport,
    SnapshotTransport,
)

DEFAULT_FAILURE_REASON = "Transaction failed on-chain."


# =========================================================================
# Reply records (partially known)
# =========================================================================


def _str_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _int_or_none(value: Any) -> int | None:
    # bool is an int subclass; a JSON true is not a confirmation count
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


@dataclass(frozen=True)
class SubmitReply:
    """Fields of a submission reply body the client understands."""

    status: str | None = None
    tx_hash: str | None = None
    tx_url: str | None = None
    commit_hash: str | None = None
    manifest_cid: str | None = None
    merkle_root: str | None = None
    message: str | None = None
    error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SubmitReply:
        return cls(
            status=_str_or_none(data.get("status")),
            tx_hash=_str_or_none(data.get("tx_hash")),
            tx_url=_str_or_none(data.get("tx_url")),
            commit_hash=_str_or_none(data.get("commit_hash")),
            manifest_cid=_str_or_none(data.get("manifest_cid")),
            merkle_root=_str_or_none(data.get("merkle_root")),
            message=_str_or_none(data.get("message")),
            error=_str_or_none(data.get("error")),
        )


@dataclass(frozen=True)
class StatusReply:
    """Fields of a status reply body the client understands."""

    status: str | None = None
    confirmations: int | None = None
    message: str | None = None
    error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatusReply:
        return cls(
            status=_str_or_none(data.get("status")),
            confirmations=_int_or_none(data.get("confirmations")),
            message=_str_or_none(data.get("message")),
            error=_str_or_none(data.get("error")),
        )


# =========================================================================
# Result types
# =========================================================================


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of the single submission call.

    Attributes:
        accepted: True when the service replied 2xx with a JSON object.
        status_label: The reply's ``status`` string, verbatim.
        transaction_id: ``tx_hash`` from the reply. None if absent.
        transaction_url: Explorer link (``tx_url``). None if absent.
        commit_hash: Pass-through, opaque.
        manifest_id: Pass-through (``manifest_cid``), opaque.
        merkle_root: Pass-through, opaque.
    """

    accepted: bool
    status_label: str | None = None
    transaction_id: str | None = None
    transaction_url: str | None = None
    commit_hash: str | None = None
    manifest_id: str | None = None
    merkle_root: str | None = None


@dataclass(frozen=True)
class Confirmed:
    """Terminal: the service reports the required depth was reached."""

    confirmations: int | None = None


@dataclass(frozen=True)
class Failed:
    """Terminal: the service reports the transaction failed."""

    reason: str


@dataclass(frozen=True)
class Pending:
    """Not terminal yet. Also covers absent or unrecognized status labels."""

    status_label: str | None = None


PollOutcome = Confirmed | Failed | Pending


# =========================================================================
# Response parsing (pure functions, no I/O)
# =========================================================================


def _body_detail(response: HttpResponse, *fields: str) -> str | None:
    """First non-empty named string field of the body, else the raw text."""
    if response.data is not None:
        for name in fields:
            value = _str_or_none(response.data.get(name))
            if value is not None:
                return value
    return response.text or None


def _http_summary(response: HttpResponse) -> str:
    return f"HTTP {response.status_code} {response.reason_phrase}".rstrip()


def parse_submission(response: HttpResponse) -> SubmissionResult:
    """Interpret the submission reply.

    Returns:
        SubmissionResult with accepted=True. A result without a
        transaction id is still returned; the caller decides that is fatal
        (see ``require_transaction_id``) after publishing pass-through
        fields.

    Raises:
        SubmissionRejected: Non-2xx status.
        EmptyResponse: 2xx status with an empty or non-JSON body.
    """
    if not response.ok:
        detail = _body_detail(response, "error")
        message = f"Code Quill snapshot failed: {_http_summary(response)}"
        if detail:
            message += f" - {detail}"
        raise SubmissionRejected(
            message,
            details={
                "status_code": response.status_code,
                "reason": response.reason_phrase,
                "detail": detail,
            },
        )

    if response.data is None:
        raise EmptyResponse(
            "Snapshot accepted but response body was empty or not JSON.",
            details={"status_code": response.status_code},
        )

    reply = SubmitReply.from_dict(response.data)
    return SubmissionResult(
        accepted=True,
        status_label=reply.status,
        transaction_id=reply.tx_hash,
        transaction_url=reply.tx_url,
        commit_hash=reply.commit_hash,
        manifest_id=reply.manifest_cid,
        merkle_root=reply.merkle_root,
    )


def require_transaction_id(submission: SubmissionResult) -> str:
    """Return the transaction id or raise NoTransactionId."""
    if submission.transaction_id is None:
        raise NoTransactionId(
            "Snapshot response did not include tx_hash, cannot wait for confirmation.",
            details={"status": submission.status_label},
        )
    return submission.transaction_id


def parse_status(response: HttpResponse) -> PollOutcome:
    """Interpret one status poll reply.

    Status labels match case-insensitively. Anything other than
    "confirmed" or "failed" (including a missing label) is Pending.

    Raises:
        TransientPollError: Non-2xx status, or a 2xx body that is empty or
            not a JSON object.
    """
    if not response.ok:
        detail = _body_detail(response, "message", "error")
        message = _http_summary(response)
        if detail:
            message += f" - {detail}"
        raise TransientPollError(
            message,
            details={"status_code": response.status_code, "detail": detail},
        )

    if response.data is None:
        raise TransientPollError(
            "returned non-JSON/empty body",
            details={"status_code": response.status_code},
        )

    reply = StatusReply.from_dict(response.data)
    label = (reply.status or "").lower()

    if label == "confirmed":
        return Confirmed(confirmations=reply.confirmations)
    if label == "failed":
        return Failed(reason=reply.message or reply.error or DEFAULT_FAILURE_REASON)
    return Pending(status_label=reply.status)


# =========================================================================
# SnapshotClient
# =========================================================================


class SnapshotClient:
    """Authenticated caller of the Code Quill snapshot API.

    Args:
        api_key: Repository-scoped credential. Sent as a header, never
            logged or returned.
        transport: Injectable transport. Defaults to HttpxTransport.
    """

    def __init__(
        self,
        api_key: str,
        transport: SnapshotTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._transport = transport or HttpxTransport()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(transport={self._transport!r})"

    def _headers(self) -> dict[str, str]:
        return {API_KEY_HEADER: self._api_key}

    async def submit(self, request: SnapshotRequest) -> HttpResponse:
        """POST the snapshot payload to the submission endpoint.

        Transport exceptions propagate to the caller.
        """
        return await self._transport.post_json(
            request.endpoint,
            request.submission_payload(),
            self._headers(),
        )

    async def check_status(
        self,
        request: SnapshotRequest,
        transaction_id: str,
    ) -> HttpResponse:
        """POST one status query for a transaction.

        Transport exceptions propagate to the caller.
        """
        return await self._transport.post_json(
            request.status_endpoint,
            request.status_payload(transaction_id),
            self._headers(),
        )
