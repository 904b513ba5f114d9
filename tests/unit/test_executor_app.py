"""Unit tests for the execution worker HTTP application."""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

import falcon.testing
import pytest

from gitwright.executor import InvalidExecRequestError, WorkerConfig
from gitwright.executor.app import RunningRequests, create_worker_app

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Return a workspace directory the app will create on startup."""
    return tmp_path / "workspace"


@pytest.fixture
def client(workspace: Path) -> falcon.testing.TestClient:
    """Create a test client for the worker app."""
    config = WorkerConfig(workspace=workspace, default_timeout_ms=5_000)
    return falcon.testing.TestClient(create_worker_app(config))


class TestExecEndpoint:
    """Tests for ``POST /exec``."""

    def test_runs_command_in_workspace(
        self, client: falcon.testing.TestClient, workspace: Path
    ) -> None:
        """Commands default to the workspace and report camelCase fields."""
        result = client.simulate_post("/exec", json={"command": ["pwd"]})

        assert result.status_code == HTTPStatus.OK
        body = result.json
        assert body["exitCode"] == 0
        assert body["stdout"].strip() == str(workspace.resolve())
        assert "durationMs" in body
        assert workspace.is_dir(), "The workspace is created on startup"

    def test_non_zero_exit_is_still_200(
        self, client: falcon.testing.TestClient, tmp_path: Path
    ) -> None:
        """Command failures are results, not HTTP errors."""
        result = client.simulate_post(
            "/exec",
            json={
                "command": ["sh", "-c", "echo nope >&2; exit 2"],
                "workingDir": str(tmp_path),
                "env": {"GIT_TERMINAL_PROMPT": "0"},
                "timeoutMs": 2_000,
            },
        )

        assert result.status_code == HTTPStatus.OK
        assert result.json["exitCode"] == 2
        assert result.json["stderr"] == "nope\n"

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"command": []},
            {"command": [""]},
            {"command": ["ls"], "timeoutMs": 0},
            {"command": "ls"},
        ],
    )
    def test_malformed_requests_are_rejected(
        self, client: falcon.testing.TestClient, body: dict[str, typ.Any]
    ) -> None:
        """Invalid bodies return 400 with an error message."""
        result = client.simulate_post("/exec", json=body)

        assert result.status_code == HTTPStatus.BAD_REQUEST
        assert "error" in result.json

    def test_invalid_json_is_rejected(self, client: falcon.testing.TestClient) -> None:
        """A body that is not JSON returns 400."""
        result = client.simulate_post(
            "/exec", body=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert result.status_code == HTTPStatus.BAD_REQUEST


class TestCancelEndpoint:
    """Tests for ``POST /exec/{request_id}/cancel``."""

    def test_unknown_request_is_404(self, client: falcon.testing.TestClient) -> None:
        """Cancelling a request that is not running returns 404."""
        result = client.simulate_post("/exec/op-1-0/cancel")

        assert result.status_code == HTTPStatus.NOT_FOUND
        assert result.json == {"cancelled": False}


class TestProbes:
    """Tests for ``/health`` and ``/status``."""

    def test_health(self, client: falcon.testing.TestClient) -> None:
        """The worker reports itself healthy."""
        result = client.simulate_get("/health")

        assert result.status_code == HTTPStatus.OK
        assert result.json == {"status": "healthy"}

    def test_status(self, client: falcon.testing.TestClient, workspace: Path) -> None:
        """Status reports the running count and the workspace."""
        result = client.simulate_get("/status")

        assert result.json == {
            "status": "healthy",
            "running": 0,
            "workspace": str(workspace),
        }


class TestRunningRequests:
    """Tests for the request registry."""

    def test_register_cancel_release(self) -> None:
        """Cancelling sets the event; released ids are forgotten."""
        running = RunningRequests()
        event = running.register("op-1-0")

        assert len(running) == 1
        assert running.cancel("op-1-0") is True
        assert event.is_set()
        running.release("op-1-0")
        assert running.cancel("op-1-0") is False
        assert len(running) == 0

    def test_duplicate_ids_are_rejected(self) -> None:
        """A request id can only run once at a time."""
        running = RunningRequests()
        running.register("op-1-0")

        with pytest.raises(InvalidExecRequestError, match="already running"):
            running.register("op-1-0")
