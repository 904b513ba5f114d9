"""Behavioural coverage for git operations submitted over HTTP."""

from __future__ import annotations

import typing as typ

import falcon.testing
import pytest
from pytest_bdd import given, parsers, scenario, then, when

from gitwright.executor import ExecResult
from tests.helpers import run_async
from tests.helpers.app import build_test_app
from tests.helpers.fakes import FAKE_TOKEN
from tests.helpers.records import make_installation, make_repository

if typ.TYPE_CHECKING:
    from falcon.testing.client import Result
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tests.helpers.app import AppHarness


class OperationsContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    harness: AppHarness
    response: Result
    operation_id: int
    operation: dict[str, typ.Any]
    listed: list[dict[str, typ.Any]]


@scenario("../operations.feature", "Clone a known repository")
def test_clone_known_repository() -> None:
    """Wrap the pytest-bdd scenario for a successful clone."""


@scenario("../operations.feature", "Unknown repositories are rejected")
def test_unknown_repository_rejected() -> None:
    """Wrap the pytest-bdd scenario for unknown repositories."""


@scenario("../operations.feature", "A failing step fails the operation")
def test_failing_step() -> None:
    """Wrap the pytest-bdd scenario for failed commands."""


@scenario("../operations.feature", "Recent operations are listed newest first")
def test_recent_operations() -> None:
    """Wrap the pytest-bdd scenario for the repository listing."""


@pytest.fixture
def operations_context() -> OperationsContext:
    """Provide empty scenario state."""
    return {}


def _request(
    harness: AppHarness, method: str, path: str, **kwargs: typ.Any
) -> Result:
    """Send one request and let any execution it scheduled finish."""

    async def _call() -> Result:
        conductor = falcon.testing.ASGIConductor(harness.app)
        result = await conductor.simulate_request(method, path, **kwargs)
        await harness.dispatcher.drain()
        return result

    return run_async(_call)


@given(parsers.parse('an installation "{login}" with repository "{full_name}"'))
def given_installation(
    operations_context: OperationsContext,
    session_factory: async_sessionmaker[AsyncSession],
    login: str,
    full_name: str,
) -> None:
    """Store an installation and one repository."""
    harness = build_test_app(session_factory)
    run_async(
        lambda: harness.store.upsert_installation(
            make_installation(login=login), [make_repository(full_name=full_name)]
        )
    )
    operations_context["harness"] = harness


@given(
    parsers.parse(
        'the worker answers the next step with exit code {code:d} and "{stderr}"'
    )
)
def given_worker_failure(
    operations_context: OperationsContext, code: int, stderr: str
) -> None:
    """Script the next worker result."""
    operations_context["harness"].worker.queue(ExecResult(exit_code=code, stderr=stderr))


@when(parsers.parse('I submit a "{kind}" operation for "{full_name}"'))
def when_submit(
    operations_context: OperationsContext, kind: str, full_name: str
) -> None:
    """POST a generic operation request."""
    response = _request(
        operations_context["harness"],
        "POST",
        "/operations",
        json={"type": kind, "repository": full_name},
    )
    operations_context["response"] = response
    if response.status_code == 202:  # noqa: PLR2004 - HTTP Accepted
        operations_context["operation_id"] = response.json["data"]["id"]


@when("I fetch the submitted operation")
def when_fetch(operations_context: OperationsContext) -> None:
    """GET the operation created by the last submission."""
    operation_id = operations_context["operation_id"]
    response = _request(
        operations_context["harness"], "GET", f"/operations/{operation_id}"
    )
    assert response.status_code == 200, response.text  # noqa: PLR2004 - HTTP OK
    operations_context["operation"] = response.json["data"]


@when(parsers.parse('I list recent operations for "{full_name}"'))
def when_list(operations_context: OperationsContext, full_name: str) -> None:
    """GET the repository's recent operations."""
    response = _request(
        operations_context["harness"], "GET", f"/repositories/{full_name}/operations"
    )
    assert response.status_code == 200, response.text  # noqa: PLR2004 - HTTP OK
    operations_context["listed"] = response.json["data"]


@then(parsers.parse("the response status is {status:d}"))
def then_response_status(operations_context: OperationsContext, status: int) -> None:
    """Assert the HTTP response status code."""
    response = operations_context["response"]
    assert response.status_code == status, (
        f"expected status {status}, got {response.status_code}: {response.text}"
    )


@then(parsers.parse('the submitted operation is "{status}"'))
def then_submitted_status(operations_context: OperationsContext, status: str) -> None:
    """Assert the status returned by the submission itself."""
    assert operations_context["response"].json["data"]["status"] == status


@then(parsers.parse('the operation status is "{status}"'))
def then_operation_status(operations_context: OperationsContext, status: str) -> None:
    """Assert the status seen when polling."""
    operation = operations_context["operation"]
    assert operation["status"] == status, operation
    assert operation["completed_at"] is not None


@then(parsers.parse('the operation result mentions "{text}"'))
def then_result_mentions(operations_context: OperationsContext, text: str) -> None:
    """Assert the stored result carries the diagnostic."""
    assert text in operations_context["operation"]["result"]


@then(parsers.parse('the worker ran "{command}"'))
def then_worker_ran(operations_context: OperationsContext, command: str) -> None:
    """Assert one of the worker requests had exactly this argv."""
    argvs = [request.command for request in operations_context["harness"].worker.requests]
    assert command.split(" ") in argvs, argvs


@then("the installation token never appears in a worker command")
def then_token_not_in_argv(operations_context: OperationsContext) -> None:
    """The token travels in the environment only."""
    for request in operations_context["harness"].worker.requests:
        assert all(FAKE_TOKEN not in arg for arg in request.command)
        assert request.env is not None
        assert FAKE_TOKEN in request.env.values()


@then("no operation was recorded")
def then_nothing_recorded(operations_context: OperationsContext) -> None:
    """An unknown repository never creates a row."""
    harness = operations_context["harness"]
    assert run_async(lambda: harness.store.get_operation(1)) is None
    assert harness.worker.requests == []


@then(parsers.parse('the listed operation types are "{types}"'))
def then_listed_types(operations_context: OperationsContext, types: str) -> None:
    """Assert listing order by operation type."""
    listed = [item["type"] for item in operations_context["listed"]]
    assert listed == [kind.strip() for kind in types.split(",")]
