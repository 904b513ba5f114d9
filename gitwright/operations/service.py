"""Operation Orchestrator: submit, execute and cancel git operations.

Usage
-----
>>> orchestrator = OperationOrchestrator(
...     OrchestratorDependencies(store=store, credentials=provider, worker=worker),
...     dispatcher=TaskDispatcher(),
... )
>>> operation = await orchestrator.submit("clone", "octo/reef")
>>> operation.status
'pending'

"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses as dc
import time
import typing as typ

import msgspec

from gitwright.common.slug import parse_full_name
from gitwright.common.time import elapsed_ms
from gitwright.executor.errors import CommandFailedError, ExecutionTimeoutError
from gitwright.executor.models import (
    CANCELLED_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    ExecRequest,
)
from gitwright.logging import get_logger, log_info, log_warning
from gitwright.storage.errors import InvalidTransitionError
from gitwright.storage.models import OperationStatus

from .commands import (
    FileChange,
    OperationKind,
    PlanContext,
    build_plan,
    redact,
    step_count,
    validate_branch,
    validate_file_path,
)
from .config import DEFAULT_COMMIT_MESSAGE, OperationsConfig
from .dispatch import TaskDispatcher
from .errors import (
    CANCELLED_MESSAGE,
    InvalidOperationError,
    OperationCancelledError,
    OperationNotFoundError,
    RepositoryNotFoundError,
)
from .locks import RepositoryLocks
from .observability import OperationEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from gitwright.executor.models import ExecResult
    from gitwright.github.models import InstallationToken
    from gitwright.storage.models import GitOperation
    from gitwright.storage.store import OperationStore

    from .commands import CommandPlan
    from .dispatch import OperationDispatcher
    from .locks import RepositoryLockRegistry

logger = get_logger(__name__)


class TokenSource(typ.Protocol):
    """The part of the credential provider the orchestrator needs."""

    async def get_token(self, installation_id: int) -> InstallationToken:
        """Return a valid installation token."""
        ...


class CommandWorker(typ.Protocol):
    """The part of the execution worker client the orchestrator needs."""

    async def execute(self, request: ExecRequest) -> ExecResult:
        """Run one command."""
        ...

    async def cancel(self, request_id: str) -> bool:
        """Stop a running command."""
        ...


@dc.dataclass(frozen=True, slots=True)
class OrchestratorDependencies:
    """Collaborators injected into :class:`OperationOrchestrator`."""

    store: OperationStore
    credentials: TokenSource
    worker: CommandWorker


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _step_output(result: ExecResult) -> str:
    # git writes progress and "Cloning into" to stderr.
    parts = (result.stdout.strip(), result.stderr.strip())
    return "\n".join(part for part in parts if part)


class OperationOrchestrator:
    """Turn client requests into executed, persisted git operations.

    ``submit`` validates the request and records a ``pending`` row, then
    hands the id to the dispatcher. ``execute`` runs under a per-repository
    lock, moves the row through ``running`` to a terminal status, and never
    lets an exception escape without recording it.
    """

    def __init__(
        self,
        dependencies: OrchestratorDependencies,
        *,
        config: OperationsConfig | None = None,
        dispatcher: OperationDispatcher | None = None,
        event_logger: OperationEventLogger | None = None,
        locks: RepositoryLockRegistry | None = None,
    ) -> None:
        """Wire collaborators; defaults run executions as local tasks."""
        self._store = dependencies.store
        self._credentials = dependencies.credentials
        self._worker = dependencies.worker
        self._config = config or OperationsConfig()
        self._dispatcher = dispatcher or TaskDispatcher()
        self._events = event_logger or OperationEventLogger()
        self._locks: RepositoryLockRegistry = locks or RepositoryLocks()
        self._active_requests: dict[int, str] = {}

    @property
    def dispatcher(self) -> OperationDispatcher:
        """Return the dispatcher executions are handed to."""
        return self._dispatcher

    async def submit(
        self,
        kind: str,
        full_name: str,
        *,
        branch: str | None = None,
        message: str | None = None,
        files: cabc.Sequence[FileChange] | None = None,
    ) -> GitOperation:
        """Record a pending operation and dispatch its execution.

        Parameters
        ----------
        kind
            ``clone``, ``pull``, ``push`` or ``commit``.
        full_name
            Target repository as ``owner/name``.
        branch
            Branch to operate on; the configured default when omitted.
        message
            Commit message for ``commit``; ignored otherwise.
        files
            Files to write before a ``commit``; ignored otherwise.

        Returns
        -------
        GitOperation
            The ``pending`` row with its repository loaded.

        Raises
        ------
        InvalidOperationError
            If the kind, repository name, branch or a file path is invalid.
        RepositoryNotFoundError
            If no stored repository matches ``full_name``; nothing is created.

        """
        operation_kind = OperationKind.parse(kind)
        try:
            owner, name = parse_full_name(full_name)
        except ValueError as exc:
            raise InvalidOperationError(str(exc), field="repository") from exc
        target_branch = validate_branch(branch or self._config.default_branch)

        parameters: dict[str, typ.Any] = {}
        if operation_kind is OperationKind.COMMIT:
            changes = list(files or ())
            for change in changes:
                validate_file_path(change.path)
            parameters = {
                "message": message or DEFAULT_COMMIT_MESSAGE,
                "files": msgspec.to_builtins(changes),
            }

        repository = await self._store.get_repository_by_full_name(f"{owner}/{name}")
        if repository is None:
            raise RepositoryNotFoundError(f"{owner}/{name}")

        created = await self._store.create_operation(
            repository_id=repository.id,
            kind=operation_kind,
            branch=target_branch,
            parameters=parameters,
        )
        operation = await self._store.get_operation(created.id)
        if operation is None:  # pragma: no cover - row was just inserted
            raise OperationNotFoundError(created.id)

        self._events.log_submitted(
            operation_id=operation.id,
            kind=operation_kind,
            repository=repository.full_name,
        )
        self._dispatcher.dispatch(operation.id, self.execute)
        return operation

    async def execute(self, operation_id: int) -> None:
        """Run a pending operation to a terminal status.

        Operations that are unknown or no longer ``pending`` are skipped with
        a log line. Every failure, including cancellation, is recorded on the
        row as ``failed``; ``asyncio.CancelledError`` is re-raised afterwards.
        """
        operation = await self._store.get_operation(operation_id)
        if operation is None:
            log_warning(logger, "Operation %d no longer exists; skipping", operation_id)
            return
        if operation.current_status is not OperationStatus.PENDING:
            log_info(
                logger,
                "Operation %d is already %s; skipping",
                operation_id,
                operation.status,
            )
            return

        repository = operation.repository
        started = False
        try:
            async with self._locks.hold(repository.full_name):
                try:
                    await self._store.mark_running(operation_id)
                except InvalidTransitionError as exc:
                    log_info(logger, "Operation %d not started: %s", operation_id, exc)
                    return
                started = True
                self._events.log_started(
                    operation_id=operation_id,
                    kind=operation.operation_type,
                    repository=repository.full_name,
                )
                await self._run(operation, repository.installation_id)
        except asyncio.CancelledError:
            if not started:
                # Cancelled while waiting for the repository lock.
                with contextlib.suppress(InvalidTransitionError):
                    await self._store.mark_running(operation_id)
                if await self._record_failure(operation_id, CANCELLED_MESSAGE):
                    self._events.log_cancelled(
                        operation_id=operation_id, repository=repository.full_name
                    )
            raise

    async def _run(self, operation: GitOperation, installation_id: int) -> None:
        operation_id = operation.id
        full_name = operation.repository.full_name
        started = time.monotonic()
        token: str | None = None
        try:
            token = (await self._credentials.get_token(installation_id)).token
            plan = build_plan(
                OperationKind.parse(operation.operation_type),
                self._plan_context(operation),
                token=token,
            )
            output = await self._run_plan(operation_id, plan)
        except asyncio.CancelledError:
            if await self._record_failure(operation_id, CANCELLED_MESSAGE):
                self._events.log_cancelled(
                    operation_id=operation_id, repository=full_name
                )
            raise
        except OperationCancelledError:
            if await self._record_failure(operation_id, CANCELLED_MESSAGE):
                self._events.log_cancelled(
                    operation_id=operation_id, repository=full_name
                )
            return
        except Exception as exc:  # noqa: BLE001 - every failure is recorded on the row
            message = redact(str(exc) or type(exc).__name__, token)
            await self._record_failure(
                operation_id, _truncate(message, self._config.failure_message_limit)
            )
            self._events.log_failed(
                operation_id=operation_id,
                repository=full_name,
                error_type=type(exc).__name__,
            )
            return

        result = _truncate(redact(output, token), self._config.result_limit)
        try:
            await self._store.mark_completed(operation_id, result)
        except InvalidTransitionError as exc:
            log_info(logger, "Operation %d finished elsewhere: %s", operation_id, exc)
            return
        self._events.log_completed(
            operation_id=operation_id,
            repository=full_name,
            steps=len(plan.steps),
            duration_ms=elapsed_ms(started, time.monotonic()),
        )

    def _plan_context(self, operation: GitOperation) -> PlanContext:
        parameters = operation.parameters or {}
        files = msgspec.convert(parameters.get("files", []), type=tuple[FileChange, ...])
        return PlanContext(
            full_name=operation.repository.full_name,
            clone_url=operation.repository.clone_url,
            branch=operation.branch,
            workspace_root=self._config.workspace_root,
            message=parameters.get("message") or DEFAULT_COMMIT_MESSAGE,
            files=files,
            bot_name=self._config.bot_name,
            bot_email=self._config.bot_email,
        )

    async def _run_plan(self, operation_id: int, plan: CommandPlan) -> str:
        outputs: list[str] = []
        for index, step in enumerate(plan.steps):
            request_id = f"op-{operation_id}-{index}"
            request = ExecRequest(
                command=list(step.argv),
                env=plan.env,
                working_dir=step.working_dir,
                timeout_ms=self._config.timeout_ms,
                request_id=request_id,
            )
            self._active_requests[operation_id] = request_id
            try:
                result = await self._worker.execute(request)
            finally:
                self._active_requests.pop(operation_id, None)

            if result.exit_code == TIMEOUT_EXIT_CODE:
                raise ExecutionTimeoutError(self._config.timeout_ms, result.stderr)
            if result.exit_code == CANCELLED_EXIT_CODE:
                raise OperationCancelledError(operation_id)
            if not result.succeeded:
                raise CommandFailedError(
                    result.exit_code, result.stderr, error=result.error
                )
            output = _step_output(result)
            if output:
                outputs.append(output)
        return "\n".join(outputs)

    async def _record_failure(self, operation_id: int, message: str) -> bool:
        try:
            await self._store.mark_failed(operation_id, message)
        except InvalidTransitionError as exc:
            log_info(logger, "Operation %d already finished: %s", operation_id, exc)
            return False
        return True

    async def _fail_pending(self, operation: GitOperation) -> bool:
        """Fail a pending row directly; False if an execution claimed it first."""
        try:
            await self._store.mark_running(operation.id)
        except InvalidTransitionError:
            return False
        await self._store.mark_failed(operation.id, CANCELLED_MESSAGE)
        # A scheduled task would find the row failed; drop it anyway.
        self._dispatcher.cancel(operation.id)
        self._events.log_cancelled(
            operation_id=operation.id, repository=operation.repository.full_name
        )
        return True

    async def cancel(self, operation_id: int) -> bool:
        """Stop an operation and record it as ``failed``.

        A ``pending`` operation is failed directly, so neither a local task
        nor a queue consumer will start it. For a running one the worker is
        asked to stop the active step; when no step is in flight the local
        task (if any) is cancelled instead.

        Returns
        -------
        bool
            ``False`` when the operation had already reached a terminal status.

        Raises
        ------
        OperationNotFoundError
            If the operation does not exist.

        """
        operation = await self._store.get_operation(operation_id)
        if operation is None:
            raise OperationNotFoundError(operation_id)
        if operation.current_status.is_terminal:
            return False

        if operation.current_status is OperationStatus.PENDING and (
            await self._fail_pending(operation)
        ):
            return True

        # A stopped step surfaces as exit code 130 and is recorded by _run.
        request_id = self._active_requests.get(operation_id)
        if request_id is not None and await self._worker.cancel(request_id):
            return True
        if self._dispatcher.cancel(operation_id):
            return True

        # Running in another process: the step request ids are deterministic.
        kind = OperationKind.parse(operation.operation_type)
        stopped = False
        for index in range(step_count(kind)):
            stopped = await self._worker.cancel(f"op-{operation_id}-{index}") or stopped
        return stopped

    async def get_operation(self, operation_id: int) -> GitOperation:
        """Return an operation with its repository.

        Raises
        ------
        OperationNotFoundError
            If the operation does not exist.

        """
        operation = await self._store.get_operation(operation_id)
        if operation is None:
            raise OperationNotFoundError(operation_id)
        return operation

    async def recent_operations(
        self, full_name: str, *, limit: int
    ) -> list[GitOperation]:
        """Return a repository's most recent operations, newest first."""
        return await self._store.recent_operations(full_name, limit=limit)


__all__ = [
    "CommandWorker",
    "OperationOrchestrator",
    "OrchestratorDependencies",
    "TokenSource",
]
