"""Unit tests for execution dispatchers."""

from __future__ import annotations

import asyncio

import pytest
from dramatiq.message import Message

from gitwright.operations import DramatiqDispatcher, TaskDispatcher
from tests.helpers.femtologging_capture import capture_femto_logs


class TestTaskDispatcher:
    """Tests for ``TaskDispatcher``."""

    @pytest.mark.asyncio
    async def test_runs_job_and_forgets_task(self) -> None:
        """Jobs run in the background and are dropped once finished."""
        dispatcher = TaskDispatcher()
        seen: list[int] = []

        async def _job(operation_id: int) -> None:
            seen.append(operation_id)

        dispatcher.dispatch(3, _job)
        assert len(dispatcher) == 1
        await dispatcher.drain()

        assert seen == [3]
        assert len(dispatcher) == 0
        assert dispatcher.cancel(3) is False

    @pytest.mark.asyncio
    async def test_cancel_stops_running_job(self) -> None:
        """Cancelling delivers ``CancelledError`` to the job."""
        dispatcher = TaskDispatcher()
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def _job(_operation_id: int) -> None:
            started.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        dispatcher.dispatch(4, _job)
        await started.wait()

        assert dispatcher.cancel(4) is True
        await dispatcher.drain()
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_job_errors_are_logged_not_raised(self) -> None:
        """A failing job is logged at ERROR and does not break draining."""
        dispatcher = TaskDispatcher()

        async def _job(_operation_id: int) -> None:
            msg = "boom"
            raise RuntimeError(msg)

        with capture_femto_logs("gitwright.operations.dispatch") as capture:
            dispatcher.dispatch(5, _job)
            await dispatcher.drain()
            capture.wait_for_count(1)

        record = capture.records[0]
        assert record.level == "ERROR"
        assert "operation 5" in record.message


class TestDramatiqDispatcher:
    """Tests for ``DramatiqDispatcher``."""

    def test_dispatch_enqueues_message(self) -> None:
        """Dispatch sends one message carrying the URL and operation id."""
        from gitwright.operations.actor import QUEUE_NAME, execute_operation_job

        broker = execute_operation_job.broker
        broker.flush_all()
        dispatcher = DramatiqDispatcher("sqlite+aiosqlite:///ops.db")

        async def _unused(_operation_id: int) -> None:
            raise AssertionError

        dispatcher.dispatch(9, _unused)

        queue = broker.queues[QUEUE_NAME]
        assert queue.qsize() == 1
        message = Message.decode(queue.get_nowait())
        assert message.actor_name == "execute_operation_job"
        assert list(message.args) == ["sqlite+aiosqlite:///ops.db", 9]
        assert dispatcher.cancel(9) is False
        broker.flush_all()
