"""
codequill-snapshot: anchor a repository snapshot with Code Quill and wait
for its transaction to confirm.

Public API:

    Pure layer (no I/O):
        - ``build_request()`` — validate raw inputs into a SnapshotRequest.
        - ``parse_submission()`` / ``parse_status()`` — interpret replies.

    Impure layer (network I/O):
        - ``run_snapshot()`` — submit, then poll until terminal. Returns RunResult.
        - ``submit_snapshot()`` / ``await_confirmation()`` — the two phases.

    Protocols (for dependency injection):
        - ``SnapshotTransport`` — HTTP boundary.
        - ``OutputSink`` — where step outputs go.

    Errors:
        - ``SnapshotError`` and its subclasses, ``ErrorCode``.
"""

__version__ = "0.1.0"

from codequill_snapshot.client import (
    Confirmed,
    Failed,
    Pending,
    PollOutcome,
    SnapshotClient,
    SubmissionResult,
    parse_status,
    parse_submission,
)
from codequill_snapshot.engine import (
    RunResult,
    announce_transaction,
    await_confirmation,
    run_snapshot,
    submit_snapshot,
)
from codequill_snapshot.errors import (
    ConfirmationTimeout,
    EmptyResponse,
    ErrorCode,
    NoTransactionId,
    SnapshotError,
    SubmissionRejected,
    TransactionFailed,
    TransientPollError,
    TransportFailure,
    ValidationError,
    ValidationErrorKind,
)
from codequill_snapshot.outputs import GithubOutputFile, MemoryOutputs, OutputSink
from codequill_snapshot.request import SnapshotRequest, build_request
from codequill_snapshot.transport import HttpResponse, HttpxTransport, SnapshotTransport

__all__ = [
    "ConfirmationTimeout",
    "Confirmed",
    "EmptyResponse",
    "ErrorCode",
    "Failed",
    "GithubOutputFile",
    "HttpResponse",
    "HttpxTransport",
    "MemoryOutputs",
    "NoTransactionId",
    "OutputSink",
    "Pending",
    "PollOutcome",
    "RunResult",
    "SnapshotClient",
    "SnapshotError",
    "SnapshotRequest",
    "SnapshotTransport",
    "SubmissionRejected",
    "SubmissionResult",
    "TransactionFailed",
    "TransientPollError",
    "TransportFailure",
    "ValidationError",
    "ValidationErrorKind",
    "announce_transaction",
    "await_confirmation",
    "build_request",
    "parse_status",
    "parse_submission",
    "run_snapshot",
    "submit_snapshot",
]
