"""Configuration for the execution worker service and its client."""

from __future__ import annotations

import dataclasses as dc
from pathlib import Path

from gitwright.config import env_positive_float, env_positive_int, env_str

from .models import DEFAULT_GRACE_PERIOD_S, DEFAULT_TIMEOUT_MS

DEFAULT_WORKSPACE = Path("/workspace")
DEFAULT_WORKER_URL = "http://127.0.0.1:8081"


@dc.dataclass(frozen=True, slots=True)
class WorkerConfig:
    """Settings for the sandbox process that runs commands.

    Attributes
    ----------
    workspace
        Default working directory for commands; created on startup.
    default_timeout_ms
        Timeout applied when a request omits ``timeoutMs``.
    grace_period_s
        Time between SIGTERM and SIGKILL once a command is being stopped.

    """

    workspace: Path = DEFAULT_WORKSPACE
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    grace_period_s: float = DEFAULT_GRACE_PERIOD_S

    @classmethod
    def from_env(cls) -> WorkerConfig:
        """Read ``GITWRIGHT_WORKER_WORKSPACE``, ``..._TIMEOUT_MS`` and ``..._GRACE_S``."""
        workspace = env_str("GITWRIGHT_WORKER_WORKSPACE")
        return cls(
            workspace=Path(workspace) if workspace else DEFAULT_WORKSPACE,
            default_timeout_ms=env_positive_int(
                "GITWRIGHT_WORKER_TIMEOUT_MS", DEFAULT_TIMEOUT_MS
            ),
            grace_period_s=env_positive_float(
                "GITWRIGHT_WORKER_GRACE_S", DEFAULT_GRACE_PERIOD_S
            ),
        )


@dc.dataclass(frozen=True, slots=True)
class WorkerClientConfig:
    """Where the orchestrator reaches the worker and how long it waits.

    The HTTP timeout for each call is the command timeout plus
    ``grace_period_s`` plus ``slack_s`` so the worker always answers first.
    """

    base_url: str = DEFAULT_WORKER_URL
    grace_period_s: float = DEFAULT_GRACE_PERIOD_S
    slack_s: float = 10.0

    @classmethod
    def from_env(cls) -> WorkerClientConfig:
        """Read ``GITWRIGHT_WORKER_URL``."""
        return cls(
            base_url=(env_str("GITWRIGHT_WORKER_URL") or DEFAULT_WORKER_URL).rstrip("/"),
            grace_period_s=env_positive_float(
                "GITWRIGHT_WORKER_GRACE_S", DEFAULT_GRACE_PERIOD_S
            ),
        )
