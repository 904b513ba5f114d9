"""Command plans for each git operation kind.

A plan is an ordered list of argv vectors plus the environment that lets git
authenticate. The installation token travels only in that environment: a
``credential.helper`` configured through ``GIT_CONFIG_*`` variables reads it
from ``GITWRIGHT_GIT_TOKEN``, so it never appears in argv, in a remote URL, or
in anything git prints.

Usage
-----
>>> context = PlanContext(
...     full_name="octo/reef",
...     clone_url="https://github.com/octo/reef.git",
...     branch="main",
...     workspace_root="/workspace",
... )
>>> plan = build_plan(OperationKind.CLONE, context, token="ghs_example")
>>> plan.steps[-1].argv[:5]
('git', 'clone', '--depth', '1', '--branch')

"""

from __future__ import annotations

import dataclasses as dc
import enum
import re
import shlex
import typing as typ
from pathlib import PurePosixPath

import msgspec

from .config import (
    DEFAULT_BOT_EMAIL,
    DEFAULT_BOT_NAME,
    DEFAULT_COMMIT_MESSAGE,
    DEFAULT_WORKSPACE_ROOT,
)
from .errors import InvalidOperationError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

TOKEN_ENV_VAR = "GITWRIGHT_GIT_TOKEN"
REDACTED = "***"

# Answers git's ``get`` requests only; ``store`` and ``erase`` are ignored.
CREDENTIAL_HELPER = (
    '!f() { test "$1" = get || exit 0; '
    "echo username=x-access-token; "
    f'echo "password=${{{TOKEN_ENV_VAR}}}"; }}; f'
)

_BRANCH_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")


class OperationKind(enum.StrEnum):
    """Git operations the orchestrator can run."""

    CLONE = "clone"
    PULL = "pull"
    PUSH = "push"
    COMMIT = "commit"

    @classmethod
    def parse(cls, value: str) -> OperationKind:
        """Return the kind named by ``value`` or raise ``InvalidOperationError``."""
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidOperationError.unknown_kind(value) from exc


class FileChange(msgspec.Struct, kw_only=True, frozen=True):
    """A file to write before committing."""

    path: str
    content: str


@dc.dataclass(frozen=True, slots=True)
class CommandStep:
    """One process to run on the execution worker."""

    argv: tuple[str, ...]
    working_dir: str


@dc.dataclass(frozen=True, slots=True)
class CommandPlan:
    """Ordered steps sharing one environment."""

    steps: tuple[CommandStep, ...]
    env: dict[str, str] = dc.field(repr=False)


@dc.dataclass(frozen=True, slots=True)
class PlanContext:
    """Everything a builder needs about the target repository and request."""

    full_name: str
    clone_url: str
    branch: str
    workspace_root: str = DEFAULT_WORKSPACE_ROOT
    message: str = DEFAULT_COMMIT_MESSAGE
    files: tuple[FileChange, ...] = ()
    bot_name: str = DEFAULT_BOT_NAME
    bot_email: str = DEFAULT_BOT_EMAIL

    @property
    def directory(self) -> str:
        """Checkout directory for the repository."""
        return workspace_dir(self.workspace_root, self.full_name)


def workspace_dir(workspace_root: str, full_name: str) -> str:
    """Return ``{workspace_root}/{owner}/{name}``."""
    owner, name = full_name.split("/", 1)
    return f"{workspace_root.rstrip('/')}/{owner}/{name}"


def credential_env(token: str) -> dict[str, str]:
    """Return the environment that lets git authenticate with ``token``."""
    return {
        "GIT_TERMINAL_PROMPT": "0",
        TOKEN_ENV_VAR: token,
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": "credential.helper",
        "GIT_CONFIG_VALUE_0": CREDENTIAL_HELPER,
    }


def redact(text: str, token: str | None) -> str:
    """Replace every occurrence of ``token`` in ``text``."""
    if not token:
        return text
    return text.replace(token, REDACTED)


def validate_branch(branch: str) -> str:
    """Return ``branch`` if git can use it unambiguously as a ref name.

    Raises
    ------
    InvalidOperationError
        If the name is empty, starts with ``-`` or ``/``, contains ``..``, or
        uses characters outside ``[A-Za-z0-9._/-]``.

    """
    if (
        not branch
        or branch.startswith(("-", "/"))
        or branch.endswith(("/", ".lock"))
        or ".." in branch
        or not _BRANCH_PATTERN.match(branch)
    ):
        raise InvalidOperationError.invalid_branch(branch)
    return branch


def validate_file_path(path: str) -> str:
    """Return ``path`` if it is relative and stays inside the checkout.

    Raises
    ------
    InvalidOperationError
        If the path is empty, absolute, contains ``..`` or NUL, or points into
        ``.git``.

    """
    candidate = PurePosixPath(path)
    if (
        not path.strip()
        or "\x00" in path
        or candidate.is_absolute()
        or ".." in candidate.parts
        or not candidate.parts
        or candidate.parts[0] == ".git"
    ):
        raise InvalidOperationError.unsafe_path(path)
    return path


def _clone_steps(context: PlanContext) -> list[CommandStep]:
    root = context.workspace_root
    return [
        CommandStep(("rm", "-rf", context.directory), root),
        CommandStep(
            (
                "git",
                "clone",
                "--depth",
                "1",
                "--branch",
                context.branch,
                context.clone_url,
                context.directory,
            ),
            root,
        ),
    ]


def _pull_steps(context: PlanContext) -> list[CommandStep]:
    return [
        CommandStep(("git", "pull", "origin", context.branch), context.directory)
    ]


def _push_steps(context: PlanContext) -> list[CommandStep]:
    return [CommandStep(("git", "push", "origin", "HEAD"), context.directory)]


def commit_script(context: PlanContext) -> str:
    """Return the shell script that writes files, commits and pushes.

    Every interpolated value goes through :func:`shlex.quote`, so messages and
    file contents reach git byte for byte. An empty diff is reported as
    ``Nothing to commit`` rather than failing the step.
    """
    q = shlex.quote
    lines = ["set -e"]
    for change in context.files:
        parent = str(PurePosixPath(change.path).parent)
        if parent != ".":
            lines.append(f"mkdir -p {q(parent)}")
        lines.append(f"printf '%s' {q(change.content)} > {q(change.path)}")
    lines.extend(
        [
            f"git config user.name {q(context.bot_name)}",
            f"git config user.email {q(context.bot_email)}",
            "git add -A",
            "if git diff --cached --quiet; then echo 'Nothing to commit'; "
            f"else git commit -m {q(context.message)}; fi",
            f"git push origin {q('HEAD:' + context.branch)}",
        ]
    )
    return "\n".join(lines)


def _commit_steps(context: PlanContext) -> list[CommandStep]:
    return [CommandStep(("sh", "-c", commit_script(context)), context.directory)]


COMMAND_BUILDERS: dict[
    OperationKind, cabc.Callable[[PlanContext], list[CommandStep]]
] = {
    OperationKind.CLONE: _clone_steps,
    OperationKind.PULL: _pull_steps,
    OperationKind.PUSH: _push_steps,
    OperationKind.COMMIT: _commit_steps,
}

_missing_builders = set(OperationKind) - set(COMMAND_BUILDERS)
if _missing_builders:  # pragma: no cover - import-time guard
    msg = f"No command builder for: {sorted(_missing_builders)}"
    raise RuntimeError(msg)


def step_count(kind: OperationKind) -> int:
    """Return how many worker requests a plan of ``kind`` issues."""
    placeholder = PlanContext(full_name="owner/name", clone_url="", branch="main")
    return len(COMMAND_BUILDERS[kind](placeholder))


def build_plan(kind: OperationKind, context: PlanContext, *, token: str) -> CommandPlan:
    """Return the steps for ``kind`` with credentials for ``token``."""
    validate_branch(context.branch)
    for change in context.files:
        validate_file_path(change.path)
    steps = COMMAND_BUILDERS[kind](context)
    return CommandPlan(steps=tuple(steps), env=credential_env(token))


__all__ = [
    "COMMAND_BUILDERS",
    "CREDENTIAL_HELPER",
    "TOKEN_ENV_VAR",
    "CommandPlan",
    "CommandStep",
    "FileChange",
    "OperationKind",
    "PlanContext",
    "build_plan",
    "commit_script",
    "credential_env",
    "redact",
    "step_count",
    "validate_branch",
    "validate_file_path",
    "workspace_dir",
]
