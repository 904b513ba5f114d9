"""Execution Worker: sandboxed command execution over HTTP."""

from __future__ import annotations

from .client import ExecutionWorkerClient
from .config import WorkerClientConfig, WorkerConfig
from .errors import (
    CommandFailedError,
    ExecutionTimeoutError,
    InvalidExecRequestError,
    WorkerUnavailableError,
)
from .models import (
    CANCELLED_EXIT_CODE,
    DEFAULT_TIMEOUT_MS,
    SPAWN_FAILURE_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    ExecRequest,
    ExecResult,
)
from .runner import run_command

__all__ = [
    "CANCELLED_EXIT_CODE",
    "DEFAULT_TIMEOUT_MS",
    "SPAWN_FAILURE_EXIT_CODE",
    "TIMEOUT_EXIT_CODE",
    "CommandFailedError",
    "ExecRequest",
    "ExecResult",
    "ExecutionTimeoutError",
    "ExecutionWorkerClient",
    "InvalidExecRequestError",
    "WorkerClientConfig",
    "WorkerConfig",
    "WorkerUnavailableError",
    "run_command",
]
