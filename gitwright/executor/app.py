"""Falcon ASGI application for the execution worker.

Routes
------
``POST /exec``
    Run a command and return ``{exitCode, stdout, stderr, error?, durationMs}``.
``POST /exec/{request_id}/cancel``
    Stop a running request started with ``requestId``.
``GET /health``
    Liveness probe returning ``{"status": "healthy"}``.
``GET /status``
    Number of running commands and the workspace path.

Usage
-----
>>> app = create_worker_app(WorkerConfig(workspace=Path("/tmp/ws")))

"""

from __future__ import annotations

import asyncio
import typing as typ

import falcon
import falcon.asgi
import msgspec

from gitwright.logging import get_logger, log_info

from .config import WorkerConfig
from .errors import InvalidExecRequestError
from .models import ExecRequest
from .runner import run_command

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["RunningRequests", "create_worker_app"]

logger = get_logger(__name__)


class RunningRequests:
    """Cancellation events for requests that carry a ``requestId``."""

    def __init__(self) -> None:
        """Start with no running requests."""
        self._events: dict[str, asyncio.Event] = {}
        self.anonymous = 0

    def __len__(self) -> int:
        """Return how many commands are currently running."""
        return len(self._events) + self.anonymous

    def register(self, request_id: str) -> asyncio.Event:
        """Return a fresh cancellation event for ``request_id``."""
        if request_id in self._events:
            raise InvalidExecRequestError.duplicate_request_id(request_id)
        event = asyncio.Event()
        self._events[request_id] = event
        return event

    def release(self, request_id: str) -> None:
        """Forget ``request_id`` once its command has finished."""
        self._events.pop(request_id, None)

    def cancel(self, request_id: str) -> bool:
        """Set the cancellation event; return False for unknown ids."""
        event = self._events.get(request_id)
        if event is None:
            return False
        event.set()
        return True


def _decode_request(raw: bytes) -> ExecRequest:
    try:
        request = msgspec.json.decode(raw, type=ExecRequest)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        raise InvalidExecRequestError(f"Invalid exec request: {exc}") from exc
    if not request.command[0].strip():
        reason = "Invalid exec request: command[0] must name a program"
        raise InvalidExecRequestError(reason)
    return request


class ExecResource:
    """``POST /exec``."""

    def __init__(self, config: WorkerConfig, running: RunningRequests) -> None:
        """Bind the resource to the worker settings and request registry."""
        self._config = config
        self._running = running

    async def on_post(self, req: Request, resp: Response) -> None:
        """Run the requested command to completion."""
        request = _decode_request(await req.stream.read())
        working_dir = request.working_dir or str(self._config.workspace)
        timeout_ms = request.timeout_ms or self._config.default_timeout_ms

        cancel_event = None
        if request.request_id is not None:
            cancel_event = self._running.register(request.request_id)
        else:
            self._running.anonymous += 1
        try:
            result = await run_command(
                request.command,
                working_dir=working_dir,
                timeout_ms=timeout_ms,
                env=request.env,
                grace_period_s=self._config.grace_period_s,
                cancel_event=cancel_event,
            )
        finally:
            if request.request_id is not None:
                self._running.release(request.request_id)
            else:
                self._running.anonymous -= 1

        log_info(
            logger,
            "Executed %r in %s: exit_code=%d duration_ms=%d",
            request.command[0],
            working_dir,
            result.exit_code,
            result.duration_ms,
        )
        resp.data = msgspec.json.encode(result)
        resp.content_type = falcon.MEDIA_JSON
        resp.status = falcon.HTTP_200


class CancelResource:
    """``POST /exec/{request_id}/cancel``."""

    def __init__(self, running: RunningRequests) -> None:
        """Bind the resource to the request registry."""
        self._running = running

    async def on_post(self, _req: Request, resp: Response, *, request_id: str) -> None:
        """Signal cancellation; 404 when the request is not running."""
        cancelled = self._running.cancel(request_id)
        resp.media = {"cancelled": cancelled}
        resp.status = falcon.HTTP_200 if cancelled else falcon.HTTP_404


class WorkerHealthResource:
    """``GET /health``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Report the worker as alive."""
        resp.media = {"status": "healthy"}
        resp.status = falcon.HTTP_200


class WorkerStatusResource:
    """``GET /status``."""

    def __init__(self, config: WorkerConfig, running: RunningRequests) -> None:
        """Bind the resource to the worker settings and request registry."""
        self._config = config
        self._running = running

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Report running commands and the workspace location."""
        resp.media = {
            "status": "healthy",
            "running": len(self._running),
            "workspace": str(self._config.workspace),
        }
        resp.status = falcon.HTTP_200


async def handle_invalid_exec_request(
    _req: Request,
    resp: Response,
    ex: InvalidExecRequestError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidExecRequestError`` to HTTP 400 ``{"error": ...}``."""
    resp.status = falcon.HTTP_400
    resp.media = {"error": ex.reason}


def create_worker_app(config: WorkerConfig | None = None) -> falcon.asgi.App:
    """Build the worker application, creating the workspace if needed.

    Parameters
    ----------
    config
        Worker settings; read from the environment when omitted.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    settings = config or WorkerConfig.from_env()
    settings.workspace.mkdir(parents=True, exist_ok=True)
    running = RunningRequests()

    app = falcon.asgi.App()  # type: ignore[no-matching-overload]  # Falcon stubs
    app.add_route("/exec", ExecResource(settings, running))
    app.add_route("/exec/{request_id}/cancel", CancelResource(running))
    app.add_route("/health", WorkerHealthResource())
    app.add_route("/status", WorkerStatusResource(settings, running))
    app.add_error_handler(InvalidExecRequestError, handle_invalid_exec_request)
    return app
