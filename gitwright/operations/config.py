"""Configuration for the Operation Orchestrator.

Usage
-----
>>> config = OperationsConfig.from_env()
>>> config.timeout_ms
300000

"""

from __future__ import annotations

import dataclasses as dc
import enum
import tempfile
from pathlib import Path

from gitwright.config import ConfigurationError, env_positive_int, env_str
from gitwright.executor.models import DEFAULT_TIMEOUT_MS

DEFAULT_WORKSPACE_ROOT = "/workspace"
DEFAULT_BRANCH = "main"
DEFAULT_COMMIT_MESSAGE = "Automated commit"
DEFAULT_BOT_NAME = "Gitwright Bot"
DEFAULT_BOT_EMAIL = "bot@gitwright.invalid"
FAILURE_MESSAGE_LIMIT = 2000
RESULT_LIMIT = 65_536
DEFAULT_LOCK_DIR = str(Path(tempfile.gettempdir()) / "gitwright-locks")


class DispatchMode(enum.StrEnum):
    """Where background executions run."""

    INLINE = "inline"
    DRAMATIQ = "dramatiq"


@dc.dataclass(frozen=True, slots=True)
class OperationsConfig:
    """Settings that shape command plans and execution budgets.

    Attributes
    ----------
    workspace_root
        Root of per-repository checkouts on the execution worker.
    timeout_ms
        Timeout for each command step sent to the worker.
    default_branch
        Branch used when a request names none.
    bot_name, bot_email
        Identity recorded on commits.
    result_limit
        Maximum characters of output stored on a completed operation.
    failure_message_limit
        Maximum characters of diagnostic stored on a failed operation.
    dispatch
        Whether executions run as in-process tasks or Dramatiq messages.
    lock_dir
        Directory of per-repository lock files shared by Dramatiq consumers
        on one host.

    """

    workspace_root: str = DEFAULT_WORKSPACE_ROOT
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    default_branch: str = DEFAULT_BRANCH
    bot_name: str = DEFAULT_BOT_NAME
    bot_email: str = DEFAULT_BOT_EMAIL
    result_limit: int = RESULT_LIMIT
    failure_message_limit: int = FAILURE_MESSAGE_LIMIT
    dispatch: DispatchMode = DispatchMode.INLINE
    lock_dir: str = DEFAULT_LOCK_DIR

    @classmethod
    def from_env(cls) -> OperationsConfig:
        """Create configuration from ``GITWRIGHT_*`` environment variables.

        Reads ``GITWRIGHT_WORKSPACE_ROOT``, ``GITWRIGHT_OPERATION_TIMEOUT_MS``,
        ``GITWRIGHT_DEFAULT_BRANCH``, ``GITWRIGHT_BOT_NAME``,
        ``GITWRIGHT_BOT_EMAIL``, ``GITWRIGHT_OPERATION_DISPATCH`` and
        ``GITWRIGHT_LOCK_DIR``.

        Raises
        ------
        ConfigurationError
            If a numeric value is not a positive integer or the dispatch mode
            is unknown.

        """
        raw_dispatch = env_str("GITWRIGHT_OPERATION_DISPATCH", DispatchMode.INLINE)
        try:
            dispatch = DispatchMode(str(raw_dispatch).lower())
        except ValueError as exc:
            raise ConfigurationError.invalid(
                "GITWRIGHT_OPERATION_DISPATCH",
                f"must be 'inline' or 'dramatiq', got: {raw_dispatch!r}",
            ) from exc

        return cls(
            workspace_root=(
                env_str("GITWRIGHT_WORKSPACE_ROOT") or DEFAULT_WORKSPACE_ROOT
            ).rstrip("/"),
            timeout_ms=env_positive_int(
                "GITWRIGHT_OPERATION_TIMEOUT_MS", DEFAULT_TIMEOUT_MS
            ),
            default_branch=env_str("GITWRIGHT_DEFAULT_BRANCH") or DEFAULT_BRANCH,
            bot_name=env_str("GITWRIGHT_BOT_NAME") or DEFAULT_BOT_NAME,
            bot_email=env_str("GITWRIGHT_BOT_EMAIL") or DEFAULT_BOT_EMAIL,
            dispatch=dispatch,
            lock_dir=env_str("GITWRIGHT_LOCK_DIR") or DEFAULT_LOCK_DIR,
        )
