"""
Snapshot request — the validated descriptor of one snapshot attempt.

``build_request()`` is the only way the rest of the package gets a
SnapshotRequest. It is pure: no I/O, no environment reads (fallbacks are
passed in), no clock. Same inputs always produce an equal request.

Rules are applied in a fixed order and the first failure wins:
    1. repository id   (explicit input → env fallback)
    2. branch          (explicit input → env fallback)
    3. confirmations, poll interval, max wait  (optional, bounded)
    4. endpoint, status endpoint

Raw inputs are strings as a CI runner hands them over; blank means absent.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

import httpx

from codequill_snapshot.errors import (
    ValidationError,
    ValidationErrorKind,
    invalid_parameter,
)

DEFAULT_CONFIRMATIONS = 1
DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_WAIT_SECONDS = 600.0

STATUS_PATH = "/status"


@dataclass(frozen=True)
class SnapshotRequest:
    """A well-formed snapshot attempt.

    Attributes:
        repository_id: Numeric repository identifier (sent as github_id).
        branch: Branch name, trimmed, non-empty.
        endpoint: Submission URL, exactly as supplied (whitespace trimmed).
        status_endpoint: Status URL. Derived from endpoint when not given.
        required_confirmations: Confirmation depth to wait for (>= 1).
        poll_interval_seconds: Sleep between status polls (>= 1).
        max_wait_seconds: Deadline for the confirmation phase (>= 1).
    """

    repository_id: int
    branch: str
    endpoint: str
    status_endpoint: str
    required_confirmations: int = DEFAULT_CONFIRMATIONS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS

    def submission_payload(self) -> dict[str, object]:
        """JSON body of the submission call."""
        return {"github_id": self.repository_id, "branch": self.branch}

    def status_payload(self, transaction_id: str) -> dict[str, object]:
        """JSON body of one status poll."""
        return {"tx_hash": transaction_id, "confirmations": self.required_confirmations}


# =========================================================================
# Helpers
# =========================================================================


def _present(value: str | None) -> str:
    """Trimmed value, or "" when absent/blank."""
    return value.strip() if value else ""


# ASCII decimal spellings only. float() and int() alone would also take
# "1_000", non-ASCII digits, "inf" and "nan".
_NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", re.ASCII)
_INTEGER_RE = re.compile(r"[+-]?\d+", re.ASCII)


def _parse_number(raw: str) -> float | None:
    """Parse a finite decimal number, or None."""
    if not _NUMBER_RE.fullmatch(raw):
        return None
    number = float(raw)
    if not math.isfinite(number):
        return None
    return number


def _parse_integer(raw: str) -> int | None:
    """Parse an integer exactly, or None.

    Plain digit strings go through int() so large values keep every digit.
    Other numeric spellings ("1e3", "3.0") count when they are integral.
    """
    if _INTEGER_RE.fullmatch(raw):
        try:
            return int(raw)
        except ValueError:
            # longer than the interpreter's int conversion limit
            return None
    number = _parse_number(raw)
    if number is None or not number.is_integer():
        return None
    return int(number)


def derive_status_endpoint(endpoint: str) -> str:
    """Status URL for an endpoint: trailing slashes stripped, then /status."""
    return endpoint.rstrip("/") + STATUS_PATH


def _check_url(field: str, raw: str, label: str) -> str:
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL:
        url = None
    if url is None or url.scheme not in ("http", "https") or not url.host:
        raise invalid_parameter(field, raw, "Must be an http(s) URL.", label=label)
    return raw


def _resolve_repository_id(explicit: str | None, fallback: str | None) -> int:
    raw = _present(explicit) or _present(fallback)
    if not raw:
        raise ValidationError(
            "Could not determine github-id. Pass the github-id input or "
            "ensure GITHUB_REPOSITORY_ID is set.",
            kind=ValidationErrorKind.MISSING_IDENTIFIER,
            field="repository_id",
        )
    repository_id = _parse_integer(raw)
    if repository_id is None:
        raise ValidationError(
            f'Invalid github-id: "{raw}" is not a finite integer.',
            kind=ValidationErrorKind.INVALID_IDENTIFIER,
            field="repository_id",
        )
    return repository_id


def _resolve_branch(explicit: str | None, fallback: str | None) -> str:
    branch = _present(explicit) or _present(fallback)
    if not branch:
        raise ValidationError(
            "Branch could not be determined. Pass the branch input or "
            "ensure GITHUB_REF_NAME is set.",
            kind=ValidationErrorKind.MISSING_BRANCH,
            field="branch",
        )
    return branch


def _bounded(
    field: str,
    label: str,
    raw: str | None,
    default: float,
    *,
    integral: bool = False,
) -> float:
    """Parse an optional numeric input that must be >= 1."""
    value = _present(raw)
    if not value:
        return default
    number: float | None = _parse_integer(value) if integral else _parse_number(value)
    if number is None or number < 1:
        requirement = "Must be an integer >= 1." if integral else "Must be a number >= 1."
        raise invalid_parameter(field, raw, requirement, label=label)
    return number


# =========================================================================
# build_request() — pure
# =========================================================================


def build_request(
    *,
    endpoint: str | None,
    repository_id: str | None = None,
    branch: str | None = None,
    status_endpoint: str | None = None,
    confirmations: str | None = None,
    poll_interval_seconds: str | None = None,
    max_wait_seconds: str | None = None,
    repository_id_fallback: str | None = None,
    branch_fallback: str | None = None,
) -> SnapshotRequest:
    """Validate raw inputs into a SnapshotRequest.

    Args:
        endpoint: Submission URL (required).
        repository_id: Explicit repository identifier input.
        branch: Explicit branch input.
        status_endpoint: Explicit status URL override.
        confirmations: Required confirmation depth (default 1).
        poll_interval_seconds: Seconds between polls (default 5).
        max_wait_seconds: Confirmation deadline in seconds (default 600).
        repository_id_fallback: Environment-derived repository identifier.
        branch_fallback: Environment-derived branch name.

    Returns:
        SnapshotRequest with every field within bounds.

    Raises:
        ValidationError: For the first input that breaks a rule.
    """
    resolved_id = _resolve_repository_id(repository_id, repository_id_fallback)
    resolved_branch = _resolve_branch(branch, branch_fallback)

    required = _bounded(
        "required_confirmations", "confirmations", confirmations,
        DEFAULT_CONFIRMATIONS, integral=True,
    )
    interval = _bounded(
        "poll_interval_seconds", "poll-interval-seconds", poll_interval_seconds,
        DEFAULT_POLL_INTERVAL_SECONDS,
    )
    max_wait = _bounded(
        "max_wait_seconds", "max-wait-seconds", max_wait_seconds,
        DEFAULT_MAX_WAIT_SECONDS,
    )

    url = _present(endpoint)
    if not url:
        raise invalid_parameter("endpoint", endpoint, "An API URL is required.", label="api-url")
    _check_url("endpoint", url, "api-url")

    override = _present(status_endpoint)
    if override:
        resolved_status = _check_url("status_endpoint", override, "status-api-url")
    else:
        resolved_status = derive_status_endpoint(url)

    return SnapshotRequest(
        repository_id=resolved_id,
        branch=resolved_branch,
        endpoint=url,
        status_endpoint=resolved_status,
        required_confirmations=int(required),
        poll_interval_seconds=float(interval),
        max_wait_seconds=float(max_wait),
    )
