"""Subprocess execution with timeout and cancellation.

Commands run in their own session so that stopping one signals the whole
process group, including anything a shell step forked.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import time
import typing as typ

from gitwright.common.time import elapsed_ms
from gitwright.logging import get_logger, log_info, log_warning

from .models import (
    CANCELLED_EXIT_CODE,
    CANCELLED_MARKER,
    DEFAULT_GRACE_PERIOD_S,
    SPAWN_FAILURE_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    TIMEOUT_MARKER,
    ExecResult,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)


def merge_environment(overrides: cabc.Mapping[str, str] | None) -> dict[str, str]:
    """Return the ambient environment with ``overrides`` taking precedence."""
    merged = dict(os.environ)
    if overrides:
        merged.update(overrides)
    return merged


def _signal_group(process: asyncio.subprocess.Process, signum: signal.Signals) -> None:
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, signum)


async def terminate_process(
    process: asyncio.subprocess.Process, grace_period_s: float
) -> None:
    """Send SIGTERM, wait ``grace_period_s``, then SIGKILL if still alive."""
    if process.returncode is not None:
        return
    _signal_group(process, signal.SIGTERM)
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_period_s)
    except TimeoutError:
        log_warning(
            logger,
            "Process %d ignored SIGTERM for %.1fs; sending SIGKILL",
            process.pid,
            grace_period_s,
        )
        _signal_group(process, signal.SIGKILL)
        await process.wait()


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _exit_code(returncode: int | None) -> int:
    if returncode is None:
        return -1
    # Report signal deaths the way a shell would.
    return 128 - returncode if returncode < 0 else returncode


async def run_command(
    command: cabc.Sequence[str],
    *,
    working_dir: str,
    timeout_ms: int,
    env: cabc.Mapping[str, str] | None = None,
    grace_period_s: float = DEFAULT_GRACE_PERIOD_S,
    cancel_event: asyncio.Event | None = None,
) -> ExecResult:
    """Run ``command`` and capture its output.

    The process exit, the timeout and ``cancel_event`` race each other. A
    timeout yields exit code 124 with ``"\\nProcess timed out"`` appended to
    stderr; a cancellation yields exit code 130 with ``"\\nProcess cancelled"``.
    In both cases the process group receives SIGTERM and, after
    ``grace_period_s``, SIGKILL.

    Parameters
    ----------
    command
        Program and arguments; no shell is involved.
    working_dir
        Directory the process starts in.
    timeout_ms
        Wall-clock budget for the process.
    env
        Variables layered over the worker's own environment.
    grace_period_s
        Delay between SIGTERM and SIGKILL.
    cancel_event
        Optional event that stops the process when set.

    Returns
    -------
    ExecResult
        Exit code, captured output and duration measured from spawn to
        completion or termination.

    """
    started = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=working_dir,
            env=merge_environment(env),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as exc:
        return ExecResult(
            exit_code=SPAWN_FAILURE_EXIT_CODE,
            stderr=str(exc),
            error=f"Failed to start {command[0]!r}: {exc.strerror or exc}",
            duration_ms=elapsed_ms(started, time.monotonic()),
        )

    output = asyncio.ensure_future(process.communicate())
    watchers: set[asyncio.Future[typ.Any]] = {output}
    cancelled = None
    if cancel_event is not None:
        cancelled = asyncio.ensure_future(cancel_event.wait())
        watchers.add(cancelled)

    stopped_by: str | None = None
    try:
        done, _pending = await asyncio.wait(
            watchers,
            timeout=timeout_ms / 1000,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if output not in done:
            stopped_by = (
                "cancel" if cancelled is not None and cancelled in done else "timeout"
            )
            await terminate_process(process, grace_period_s)
        stdout_bytes, stderr_bytes = await output
    except asyncio.CancelledError:
        await terminate_process(process, grace_period_s)
        output.cancel()
        raise
    finally:
        if cancelled is not None:
            cancelled.cancel()

    duration = elapsed_ms(started, time.monotonic())
    stdout = _decode(stdout_bytes)
    stderr = _decode(stderr_bytes)

    if stopped_by == "timeout":
        log_info(logger, "Command %r timed out after %d ms", command[0], timeout_ms)
        return ExecResult(
            exit_code=TIMEOUT_EXIT_CODE,
            stdout=stdout,
            stderr=stderr + TIMEOUT_MARKER,
            error=f"Process timed out after {timeout_ms} ms",
            duration_ms=duration,
        )
    if stopped_by == "cancel":
        log_info(logger, "Command %r cancelled", command[0])
        return ExecResult(
            exit_code=CANCELLED_EXIT_CODE,
            stdout=stdout,
            stderr=stderr + CANCELLED_MARKER,
            error="Process cancelled",
            duration_ms=duration,
        )
    return ExecResult(
        exit_code=_exit_code(process.returncode),
        stdout=stdout,
        stderr=stderr,
        duration_ms=duration,
    )
