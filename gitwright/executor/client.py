"""HTTP client for the execution worker."""

from __future__ import annotations

import httpx
import msgspec

from gitwright.logging import get_logger, log_warning

from .config import WorkerClientConfig
from .errors import InvalidExecRequestError, WorkerUnavailableError
from .models import DEFAULT_TIMEOUT_MS, ExecRequest, ExecResult

logger = get_logger(__name__)

_CLIENT_ERROR_THRESHOLD = 400
_SERVER_ERROR_THRESHOLD = 500


class _ErrorBody(msgspec.Struct):
    error: str = "request rejected"


class ExecutionWorkerClient:
    """Send exec requests to the worker and decode its results.

    Never retries: a call either returns an :class:`ExecResult` or raises.
    """

    def __init__(
        self,
        config: WorkerClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client, owning an ``httpx.AsyncClient`` unless given one."""
        self._config = config or WorkerClientConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _timeout_for(self, request: ExecRequest) -> float:
        budget_ms = request.timeout_ms or DEFAULT_TIMEOUT_MS
        return budget_ms / 1000 + self._config.grace_period_s + self._config.slack_s

    async def execute(self, request: ExecRequest) -> ExecResult:
        """Run ``request`` on the worker.

        Raises
        ------
        WorkerUnavailableError
            If the worker cannot be reached, answers 5xx, or returns an
            unreadable body.
        InvalidExecRequestError
            If the worker rejects the request as malformed (4xx).

        """
        try:
            response = await self._client.post(
                f"{self._config.base_url}/exec",
                content=msgspec.json.encode(request),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout_for(request),
            )
        except httpx.HTTPError as exc:
            raise WorkerUnavailableError.unreachable(
                self._config.base_url, type(exc).__name__
            ) from exc

        if response.status_code >= _SERVER_ERROR_THRESHOLD:
            raise WorkerUnavailableError.http_error(response.status_code)
        if response.status_code >= _CLIENT_ERROR_THRESHOLD:
            try:
                body = msgspec.json.decode(response.content, type=_ErrorBody)
            except (msgspec.DecodeError, msgspec.ValidationError):
                body = _ErrorBody()
            raise InvalidExecRequestError(body.error)

        try:
            return msgspec.json.decode(response.content, type=ExecResult)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            raise WorkerUnavailableError.malformed_response() from exc

    async def cancel(self, request_id: str) -> bool:
        """Ask the worker to stop ``request_id``; return whether it was running."""
        try:
            response = await self._client.post(
                f"{self._config.base_url}/exec/{request_id}/cancel",
                timeout=self._config.slack_s,
            )
        except httpx.HTTPError as exc:
            log_warning(
                logger,
                "Could not cancel worker request %s: %s",
                request_id,
                type(exc).__name__,
            )
            return False
        return response.status_code < _CLIENT_ERROR_THRESHOLD
