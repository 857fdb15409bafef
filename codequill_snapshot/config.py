"""
Action inputs — raw configuration as the runner hands it over.

GitHub Actions exposes ``with:`` inputs as ``INPUT_<NAME>`` environment
variables, the name upper-cased with hyphens kept (``INPUT_API-URL``).
Most shells cannot export hyphenated names, so the underscore spelling
(``INPUT_API_URL``) is accepted as well.

Values stay strings here; validation belongs to build_request().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Mapping

from codequill_snapshot.errors import invalid_parameter
from codequill_snapshot.request import SnapshotRequest, build_request

# Runner-provided fallbacks and plumbing
ENV_REPOSITORY_ID = "GITHUB_REPOSITORY_ID"
ENV_REF_NAME = "GITHUB_REF_NAME"
ENV_OUTPUT_FILE = "GITHUB_OUTPUT"
ENV_RUNNER_DEBUG = "RUNNER_DEBUG"

# Action input name → ActionInputs attribute
INPUT_NAMES: dict[str, str] = {
    "api-url": "api_url",
    "api-key": "api_key",
    "status-api-url": "status_api_url",
    "confirmations": "confirmations",
    "poll-interval-seconds": "poll_interval_seconds",
    "max-wait-seconds": "max_wait_seconds",
    "github-id": "github_id",
    "branch": "branch",
}


def read_input(environ: Mapping[str, str], name: str) -> str | None:
    """Read one action input, runner spelling first."""
    upper = name.upper()
    value = environ.get(f"INPUT_{upper}")
    if value is None:
        value = environ.get(f"INPUT_{upper.replace('-', '_')}")
    return value


@dataclass(frozen=True)
class ActionInputs:
    """Raw, unvalidated inputs for one run. The api key is kept out of repr."""

    api_url: str | None = None
    api_key: str | None = field(default=None, repr=False)
    status_api_url: str | None = None
    confirmations: str | None = None
    poll_interval_seconds: str | None = None
    max_wait_seconds: str | None = None
    github_id: str | None = None
    branch: str | None = None

    # Runner environment
    repository_id_env: str | None = None
    ref_name_env: str | None = None
    output_file: str | None = None
    runner_debug: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ActionInputs:
        if environ is None:
            environ = os.environ
        values = {attr: read_input(environ, name) for name, attr in INPUT_NAMES.items()}
        return cls(
            **values,
            repository_id_env=environ.get(ENV_REPOSITORY_ID),
            ref_name_env=environ.get(ENV_REF_NAME),
            output_file=environ.get(ENV_OUTPUT_FILE) or None,
            runner_debug=environ.get(ENV_RUNNER_DEBUG) == "1",
        )

    def merged(self, **overrides: str | None) -> ActionInputs:
        """Copy with every non-None override applied (CLI flags win)."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"unknown inputs: {sorted(unknown)}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def require_api_key(self) -> str:
        """The credential, or a ValidationError if it is blank."""
        key = (self.api_key or "").strip()
        if not key:
            raise invalid_parameter("api_key", "", "An API key is required.", label="api-key")
        return key

    def to_request(self) -> SnapshotRequest:
        """Validate into a SnapshotRequest. Raises ValidationError."""
        return build_request(
            endpoint=self.api_url,
            repository_id=self.github_id,
            branch=self.branch,
            status_endpoint=self.status_api_url,
            confirmations=self.confirmations,
            poll_interval_seconds=self.poll_interval_seconds,
            max_wait_seconds=self.max_wait_seconds,
            repository_id_fallback=self.repository_id_env,
            branch_fallback=self.ref_name_env,
        )
