"""Wire models for the execution worker protocol.

Field names are camelCase on the wire (``workingDir``, ``timeoutMs``,
``exitCode``, ``durationMs``) and snake_case in Python.
"""

from __future__ import annotations

import typing as typ

import msgspec

DEFAULT_TIMEOUT_MS = 300_000
DEFAULT_GRACE_PERIOD_S = 5.0

TIMEOUT_EXIT_CODE = 124
SPAWN_FAILURE_EXIT_CODE = 127
CANCELLED_EXIT_CODE = 130

TIMEOUT_MARKER = "\nProcess timed out"
CANCELLED_MARKER = "\nProcess cancelled"


class ExecRequest(msgspec.Struct, kw_only=True, rename="camel", omit_defaults=True):
    """Body of ``POST /exec``."""

    command: typ.Annotated[list[str], msgspec.Meta(min_length=1)]
    env: dict[str, str] | None = None
    working_dir: str | None = None
    timeout_ms: typ.Annotated[int, msgspec.Meta(gt=0)] | None = None
    request_id: str | None = None


class ExecResult(msgspec.Struct, kw_only=True, rename="camel"):
    """Body returned by ``POST /exec``."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """Return True when the process exited with status 0."""
        return self.exit_code == 0 and self.error is None

    @property
    def timed_out(self) -> bool:
        """Return True when the worker terminated the process on timeout."""
        return self.exit_code == TIMEOUT_EXIT_CODE
