"""
Error taxonomy for a snapshot run.

Every failure a run can hit is a ``SnapshotError`` carrying a coarse
``ErrorCode`` plus a ``details`` dict for diagnostics. Fatal kinds end the
run; ``TransientPollError`` is the only kind the confirmation loop swallows.

    VALIDATION            — bad/missing configuration, no network attempted
    SUBMISSION_REJECTED   — non-2xx on the initial call, never retried
    EMPTY_RESPONSE        — 2xx submission with an empty or non-JSON body
    NO_TRANSACTION_ID     — structured submission reply without tx_hash
    TRANSIENT_POLL        — non-2xx or undecodable status reply (loop continues)
    TRANSACTION_FAILED    — service reported the transaction failed
    CONFIRMATION_TIMEOUT  — deadline reached while still pending
    BACKEND_UNAVAILABLE   — the request never got an HTTP reply

Credentials never appear in messages or details.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Machine-readable failure category of a run."""

    VALIDATION = "VALIDATION"
    SUBMISSION_REJECTED = "SUBMISSION_REJECTED"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    NO_TRANSACTION_ID = "NO_TRANSACTION_ID"
    TRANSIENT_POLL = "TRANSIENT_POLL"
    TRANSACTION_FAILED = "TRANSACTION_FAILED"
    CONFIRMATION_TIMEOUT = "CONFIRMATION_TIMEOUT"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"


class ValidationErrorKind(StrEnum):
    """Which builder rule rejected the input."""

    MISSING_IDENTIFIER = "MISSING_IDENTIFIER"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    MISSING_BRANCH = "MISSING_BRANCH"
    INVALID_PARAMETER = "INVALID_PARAMETER"


class SnapshotError(Exception):
    """Base class for every failure of a snapshot run."""

    error_code: ErrorCode = ErrorCode.BACKEND_UNAVAILABLE

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    @property
    def fatal(self) -> bool:
        """Whether this error ends the run."""
        return True


class ValidationError(SnapshotError):
    """Caller-supplied configuration is missing or malformed.

    Attributes:
        kind: The builder rule that failed.
        field: Name of the first invalid field.
    """

    error_code = ErrorCode.VALIDATION

    def __init__(self, message: str, *, kind: ValidationErrorKind, field: str) -> None:
        super().__init__(message, details={"kind": str(kind), "field": field})
        self.kind = kind
        self.field = field


class SubmissionRejected(SnapshotError):
    error_code = ErrorCode.SUBMISSION_REJECTED


class EmptyResponse(SnapshotError):
    error_code = ErrorCode.EMPTY_RESPONSE


class NoTransactionId(SnapshotError):
    error_code = ErrorCode.NO_TRANSACTION_ID


class TransientPollError(SnapshotError):
    """A status poll that could not be interpreted. The loop keeps going."""

    error_code = ErrorCode.TRANSIENT_POLL

    @property
    def fatal(self) -> bool:
        return False


class TransactionFailed(SnapshotError):
    error_code = ErrorCode.TRANSACTION_FAILED


class ConfirmationTimeout(SnapshotError):
    error_code = ErrorCode.CONFIRMATION_TIMEOUT


class TransportFailure(SnapshotError):
    """The request never produced an HTTP reply (DNS, connect, TLS, timeout)."""

    error_code = ErrorCode.BACKEND_UNAVAILABLE


def invalid_parameter(
    field: str,
    raw: str | None,
    requirement: str,
    *,
    label: str | None = None,
) -> ValidationError:
    """Build the INVALID_PARAMETER error for one named input.

    Args:
        field: SnapshotRequest attribute (or setting) the input feeds.
        raw: The raw input as supplied, for the message.
        requirement: Human-readable constraint, e.g. "Must be a number >= 1."
        label: Name shown to the operator. Defaults to ``field``.
    """
    shown = label or field
    return ValidationError(
        f'Invalid {shown}: "{raw if raw is not None else ""}". {requirement}',
        kind=ValidationErrorKind.INVALID_PARAMETER,
        field=field,
    )
