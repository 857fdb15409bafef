"""
Command-line entry point.

Wires the pieces for one run: inputs (environment, then flags) →
build_request() → SnapshotClient → run_snapshot() → exit code.

A failure prints an ``::error::`` workflow command and exits 1, which is
how the Actions runner marks the step failed. Validation failures exit
before any network call.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Mapping, Sequence

from codequill_snapshot import __version__
from codequill_snapshot.client import SnapshotClient
from codequill_snapshot.config import INPUT_NAMES, ActionInputs
from codequill_snapshot.engine import RunResult, run_snapshot
from codequill_snapshot.errors import ValidationError
from codequill_snapshot.outputs import (
    GithubOutputFile,
    MemoryOutputs,
    OutputSink,
    format_error_command,
)
from codequill_snapshot.transport import DEFAULT_TIMEOUT_SECONDS, HttpxTransport, SnapshotTransport

logger = logging.getLogger("codequill_snapshot")


def configure_logging(level: str) -> None:
    """Plain message lines on stdout, the way the runner log expects them."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codequill-snapshot",
        description=(
            "Submit a Code Quill snapshot and wait for its transaction to be "
            "confirmed. Flags override INPUT_* environment variables."
        ),
    )
    for name, attr in INPUT_NAMES.items():
        parser.add_argument(f"--{name}", dest=attr, default=None, metavar="VALUE")
    parser.add_argument(
        "--http-timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help="Per-request HTTP timeout in seconds (default: %(default)s).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Default INFO, or DEBUG when RUNNER_DEBUG=1.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _fail(message: str) -> int:
    print(format_error_command(message), flush=True)
    return 1


def main(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    transport: SnapshotTransport | None = None,
) -> int:
    """Run one snapshot attempt and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    inputs = ActionInputs.from_env(environ).merged(
        **{attr: getattr(args, attr) for attr in INPUT_NAMES.values()}
    )
    configure_logging(args.log_level or ("DEBUG" if inputs.runner_debug else "INFO"))

    try:
        request = inputs.to_request()
        api_key = inputs.require_api_key()
    except ValidationError as exc:
        logger.debug("validation failed: %s", exc.details)
        return _fail(exc.message)

    sink: OutputSink
    if inputs.output_file:
        sink = GithubOutputFile(inputs.output_file)
    else:
        sink = MemoryOutputs()

    client = SnapshotClient(api_key, transport or HttpxTransport(timeout=args.http_timeout))
    result: RunResult = asyncio.run(run_snapshot(request, client, sink=sink))

    if not result.ok:
        return _fail(result.reason or "Code Quill snapshot failed.")
    return 0
