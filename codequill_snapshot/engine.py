"""
Submission-and-confirmation engine.

Drives one snapshot attempt end to end:

    1. ``submit_snapshot()`` — one POST, never retried. Publishes the
       pass-through outputs; ``announce_transaction()`` then requires and
       publishes the transaction id.
    2. ``await_confirmation()`` — polls the status endpoint until the
       transaction is confirmed, fails, or the deadline passes.
    3. ``run_snapshot()`` — runs both and folds every SnapshotError into a
       RunResult. Never raises for expected failures.

Confirmation phase state machine::

    Start → Polling → {Confirmed | Failed | TimedOut}

Polling loops on Pending and on TransientPollError; nothing leaves a
terminal state. The only bound is elapsed time: there is no attempt
ceiling, the attempt counter exists for log messages.

Sleep and clock are injectable so tests run without real time passing.
Exactly one request or sleep is in flight at any moment.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from codequill_snapshot.client import (
    Confirmed,
    Failed,
    SnapshotClient,
    SubmissionResult,
    parse_status,
    parse_submission,
    require_transaction_id,
)
from codequill_snapshot.errors import (
    ConfirmationTimeout,
    ErrorCode,
    SnapshotError,
    TransactionFailed,
    TransientPollError,
    TransportFailure,
)
from codequill_snapshot.outputs import (
    OUTPUT_COMMIT_HASH,
    OUTPUT_MANIFEST_CID,
    OUTPUT_MERKLE_ROOT,
    OUTPUT_TX_HASH,
    MemoryOutputs,
    OutputSink,
)
from codequill_snapshot.request import SnapshotRequest

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], float]


# =========================================================================
# RunResult
# =========================================================================


@dataclass(frozen=True)
class RunResult:
    """Final, externally observable outcome of one run.

    Attributes:
        ok: True only when the transaction was confirmed.
        transaction_id: tx_hash, once known (also set on later failures).
        commit_hash: Pass-through from the submission reply.
        manifest_id: Pass-through (manifest_cid).
        merkle_root: Pass-through.
        confirmations: Confirmation count reported on success, if numeric.
        reason: Human-readable failure message. None on success.
        error_code: Failure category. None on success.
    """

    ok: bool
    transaction_id: str | None = None
    commit_hash: str | None = None
    manifest_id: str | None = None
    merkle_root: str | None = None
    confirmations: int | None = None
    reason: str | None = None
    error_code: ErrorCode | None = None

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @classmethod
    def failure(
        cls,
        error: SnapshotError,
        submission: SubmissionResult | None = None,
    ) -> RunResult:
        submission = submission or SubmissionResult(accepted=False)
        return cls(
            ok=False,
            transaction_id=submission.transaction_id,
            commit_hash=submission.commit_hash,
            manifest_id=submission.manifest_id,
            merkle_root=submission.merkle_root,
            reason=error.message,
            error_code=error.error_code,
        )


# =========================================================================
# submit_snapshot()
# =========================================================================


def _publish_submission(submission: SubmissionResult, sink: OutputSink) -> None:
    """Emit the pass-through outputs. They are final whatever happens next."""
    if submission.commit_hash:
        sink.set_output(OUTPUT_COMMIT_HASH, submission.commit_hash)
    if submission.manifest_id:
        sink.set_output(OUTPUT_MANIFEST_CID, submission.manifest_id)
    if submission.merkle_root:
        sink.set_output(OUTPUT_MERKLE_ROOT, submission.merkle_root)


async def submit_snapshot(
    request: SnapshotRequest,
    client: SnapshotClient,
    sink: OutputSink,
) -> SubmissionResult:
    """Send the single submission call and interpret its reply.

    Pass-through outputs are published here, before anyone checks for a
    transaction id, so they survive a later NoTransactionId failure.

    Returns:
        SubmissionResult (transaction_id may still be None).

    Raises:
        TransportFailure: No HTTP reply.
        SubmissionRejected: Non-2xx reply.
        EmptyResponse: 2xx reply without a JSON object.
    """
    logger.info(
        'Triggering Code Quill snapshot for repo %s on branch "%s"...',
        request.repository_id,
        request.branch,
    )

    try:
        response = await client.submit(request)
    except httpx.HTTPError as exc:
        raise TransportFailure(
            f"Code Quill snapshot failed: could not reach {request.endpoint}: {exc}",
            details={"phase": "submit", "url": request.endpoint},
        ) from exc

    submission = parse_submission(response)
    logger.info(
        "Snapshot accepted by Code Quill: status=%s",
        submission.status_label or "n/a",
    )
    _publish_submission(submission, sink)
    return submission


def announce_transaction(submission: SubmissionResult, sink: OutputSink) -> str:
    """Require the transaction id, publish it, and return it.

    Raises:
        NoTransactionId: The submission reply carried no tx_hash.
    """
    tx_hash = require_transaction_id(submission)
    sink.set_output(OUTPUT_TX_HASH, tx_hash)
    logger.info("Transaction sent: %s", tx_hash)
    if submission.transaction_url:
        logger.info("Explorer: %s tx_hash=%s", submission.transaction_url, tx_hash)
    return tx_hash


# =========================================================================
# await_confirmation()
# =========================================================================


def _correlation(tx_hash: str, tx_url: str | None) -> str:
    return f"tx_hash={tx_hash}" + (f" ({tx_url})" if tx_url else "")


async def await_confirmation(
    request: SnapshotRequest,
    client: SnapshotClient,
    transaction_id: str,
    *,
    transaction_url: str | None = None,
    sleep: SleepFn = asyncio.sleep,
    clock: ClockFn = time.monotonic,
) -> Confirmed:
    """Poll the status endpoint until the transaction reaches a terminal state.

    The deadline is measured from the first call of this function. It is
    checked before every poll; a poll already in flight is not cut short.

    Args:
        request: The validated request (status URL, depth, timing).
        client: Client used for the status calls.
        transaction_id: tx_hash from the submission. Echoed in every
            message.
        transaction_url: Explorer link, added to the timeout message.
        sleep: Awaitable sleep. Default asyncio.sleep.
        clock: Monotonic seconds. Default time.monotonic.

    Returns:
        The Confirmed outcome.

    Raises:
        ConfirmationTimeout: Deadline reached while not yet terminal.
        TransactionFailed: The service reported the transaction failed.
        TransportFailure: A poll got no HTTP reply.
    """
    logger.info(
        "Waiting for confirmation (%d confs, up to %gs)... tx_hash=%s",
        request.required_confirmations,
        request.max_wait_seconds,
        transaction_id,
    )

    started_at = clock()
    attempt = 0

    while True:
        elapsed = clock() - started_at
        if elapsed >= request.max_wait_seconds:
            raise ConfirmationTimeout(
                f"Timed out after {int(elapsed)}s while waiting for confirmation. "
                f"{_correlation(transaction_id, transaction_url)}",
                details={
                    "elapsed_seconds": elapsed,
                    "attempts": attempt,
                    "tx_hash": transaction_id,
                },
            )

        attempt += 1

        try:
            response = await client.check_status(request, transaction_id)
        except httpx.HTTPError as exc:
            raise TransportFailure(
                f"Status check attempt #{attempt} could not reach "
                f"{request.status_endpoint}: {exc}. tx_hash={transaction_id}",
                details={
                    "phase": "status",
                    "url": request.status_endpoint,
                    "attempt": attempt,
                    "tx_hash": transaction_id,
                },
            ) from exc

        try:
            outcome = parse_status(response)
        except TransientPollError as exc:
            logger.info(
                "Status check attempt #%d %s. Waiting... tx_hash=%s",
                attempt,
                exc.message if response.ok else f"got {exc.message}",
                transaction_id,
            )
            await sleep(request.poll_interval_seconds)
            continue

        if isinstance(outcome, Confirmed):
            if outcome.confirmations:
                logger.info(
                    "Transaction confirmed (%d confirmations). tx_hash=%s",
                    outcome.confirmations,
                    transaction_id,
                )
            else:
                logger.info("Transaction confirmed. tx_hash=%s", transaction_id)
            return outcome

        if isinstance(outcome, Failed):
            raise TransactionFailed(
                f"Code Quill transaction failed: {outcome.reason} tx_hash={transaction_id}",
                details={"attempt": attempt, "tx_hash": transaction_id},
            )

        logger.info(
            "Still pending after %ds (attempt #%d, status=%s). tx_hash=%s",
            int(elapsed),
            attempt,
            outcome.status_label or "n/a",
            transaction_id,
        )
        await sleep(request.poll_interval_seconds)


# =========================================================================
# run_snapshot()
# =========================================================================


async def run_snapshot(
    request: SnapshotRequest,
    client: SnapshotClient,
    *,
    sink: OutputSink | None = None,
    sleep: SleepFn = asyncio.sleep,
    clock: ClockFn = time.monotonic,
) -> RunResult:
    """Submit one snapshot and wait for its confirmation.

    Args:
        request: Validated request from build_request().
        client: Client for both calls.
        sink: Where outputs go. Default MemoryOutputs.
        sleep: Awaitable sleep between polls.
        clock: Monotonic clock for the deadline.

    Returns:
        RunResult. ok=True only on confirmation; every SnapshotError
        becomes a failed RunResult carrying its message and code.
    """
    if sink is None:
        sink = MemoryOutputs()

    submission: SubmissionResult | None = None
    try:
        submission = await submit_snapshot(request, client, sink)
        tx_hash = announce_transaction(submission, sink)
        confirmed = await await_confirmation(
            request,
            client,
            tx_hash,
            transaction_url=submission.transaction_url,
            sleep=sleep,
            clock=clock,
        )
    except SnapshotError as exc:
        logger.debug("run failed (%s): %s", exc.error_code, exc.message)
        return RunResult.failure(exc, submission)

    return RunResult(
        ok=True,
        transaction_id=tx_hash,
        commit_hash=submission.commit_hash,
        manifest_id=submission.manifest_id,
        merkle_root=submission.merkle_root,
        confirmations=confirmed.confirmations,
    )
