"""Background dispatch of operation executions.

``submit`` returns as soon as the pending row exists; a dispatcher decides
where ``execute`` then runs. :class:`TaskDispatcher` schedules an asyncio task
in the API process. :class:`DramatiqDispatcher` enqueues a message for the
``git_operations`` queue, consumed by ``dramatiq gitwright.operations.actor``.
"""

from __future__ import annotations

import asyncio
import typing as typ

from gitwright.logging import get_logger, log_exception, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    OperationJob = cabc.Callable[[int], cabc.Awaitable[None]]

logger = get_logger(__name__)


class OperationDispatcher(typ.Protocol):
    """Schedules ``job(operation_id)`` outside the submitting request."""

    def dispatch(self, operation_id: int, job: OperationJob) -> None:
        """Schedule execution of ``operation_id``."""
        ...

    def cancel(self, operation_id: int) -> bool:
        """Stop a scheduled execution; return whether one was found."""
        ...


class TaskDispatcher:
    """Run executions as tasks on the current event loop.

    Strong references to the tasks are held until they finish, so the loop
    cannot garbage-collect an execution halfway through.
    """

    def __init__(self) -> None:
        """Start with no tasks."""
        self._tasks: dict[int, asyncio.Task[None]] = {}

    def __len__(self) -> int:
        """Return the number of unfinished executions."""
        return len(self._tasks)

    def dispatch(self, operation_id: int, job: OperationJob) -> None:
        """Create a task running ``job(operation_id)``."""
        task = asyncio.get_running_loop().create_task(
            _run_job(job, operation_id), name=f"git-operation-{operation_id}"
        )
        self._tasks[operation_id] = task
        task.add_done_callback(lambda _task: self._forget(operation_id, _task))

    def _forget(self, operation_id: int, task: asyncio.Task[None]) -> None:
        if self._tasks.get(operation_id) is task:
            del self._tasks[operation_id]

    def cancel(self, operation_id: int) -> bool:
        """Cancel the task for ``operation_id`` if it is still running."""
        task = self._tasks.get(operation_id)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def drain(self) -> None:
        """Wait for every scheduled execution to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)


async def _run_job(job: OperationJob, operation_id: int) -> None:
    try:
        await job(operation_id)
    except asyncio.CancelledError:
        log_info(logger, "Execution of operation %d was cancelled", operation_id)
        raise
    except Exception as exc:  # noqa: BLE001 - background task boundary
        log_exception(
            logger, f"Execution of operation {operation_id} raised", exc
        )


class DramatiqDispatcher:
    """Enqueue executions on the ``git_operations`` Dramatiq queue.

    Parameters
    ----------
    database_url
        URL the consuming worker uses to reach the operation store.

    """

    def __init__(self, database_url: str) -> None:
        """Store the database URL sent with each message."""
        self._database_url = database_url

    def dispatch(self, operation_id: int, job: OperationJob) -> None:
        """Send ``execute_operation_job``; ``job`` runs in the consumer instead."""
        del job
        from gitwright.operations.actor import execute_operation_job

        execute_operation_job.send(self._database_url, operation_id)
        log_info(logger, "Enqueued operation %d on git_operations", operation_id)

    def cancel(self, operation_id: int) -> bool:
        """Queued messages cannot be recalled; the worker cancel path applies."""
        del operation_id
        return False


__all__ = ["DramatiqDispatcher", "OperationDispatcher", "TaskDispatcher"]
