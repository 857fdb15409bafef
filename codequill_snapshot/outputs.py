"""
Step outputs and workflow commands.

Outputs (tx-hash, commit-hash, manifest-cid, merkle-root) are published as
soon as they are known, independent of how the run ends. Where they go is
an ``OutputSink``:

    - GithubOutputFile — appends to the file named by $GITHUB_OUTPUT
    - MemoryOutputs    — keeps them in a dict (local runs, tests)
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

OUTPUT_TX_HASH = "tx-hash"
OUTPUT_COMMIT_HASH = "commit-hash"
OUTPUT_MANIFEST_CID = "manifest-cid"
OUTPUT_MERKLE_ROOT = "merkle-root"


@runtime_checkable
class OutputSink(Protocol):
    """Destination for named step outputs."""

    def set_output(self, name: str, value: str) -> None:
        ...


class MemoryOutputs:
    """Records outputs in insertion order."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    def set_output(self, name: str, value: str) -> None:
        self.values[name] = value
        logger.info("output %s=%s", name, value)


class GithubOutputFile:
    """Appends outputs to a GitHub Actions output file.

    Single-line values use ``name=value``. Values containing a newline use
    the heredoc form with a random delimiter, which the runner requires.

    Args:
        path: The file named by $GITHUB_OUTPUT.
        delimiter_fn: Returns a fresh heredoc delimiter. Inject for tests.
    """

    def __init__(
        self,
        path: str | Path,
        delimiter_fn: Callable[[], str] | None = None,
    ) -> None:
        self._path = Path(path)
        self._delimiter_fn = delimiter_fn or (lambda: f"ghadelimiter_{uuid.uuid4()}")

    @property
    def path(self) -> Path:
        return self._path

    def set_output(self, name: str, value: str) -> None:
        if "\n" in value or "\r" in value:
            delimiter = self._delimiter_fn()
            if delimiter in name or delimiter in value:
                raise ValueError(f"output delimiter collides with output {name!r}")
            entry = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
        else:
            entry = f"{name}={value}\n"
        with self._path.open("a", encoding="utf-8") as f:
            f.write(entry)
        logger.debug("wrote output %s to %s", name, self._path)


def escape_command_data(message: str) -> str:
    """Escape a workflow command message the way the runner decodes it."""
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def format_error_command(message: str) -> str:
    """``::error::`` workflow command that marks the step as failed."""
    return f"::error::{escape_command_data(message)}"
