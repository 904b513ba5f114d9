"""Operation API resources.

Routes
------
``POST /operations``
    Submit any kind: ``{type, repository, branch?, message?, files?}``.
``POST /operations/clone``
    Shortcut for ``{type: "clone"}``.
``POST /operations/commit``
    Commit and push; ``message`` is required.
``GET /operations/{operation_id}``
    Current state of one operation.
``DELETE /operations/{operation_id}``
    Cancel an operation.
``GET /repositories/{owner}/{name}/operations``
    Recent operations of a repository, newest first.

Submissions answer ``202 Accepted`` with the ``pending`` operation; clients
poll ``GET /operations/{operation_id}`` for the outcome.
"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec

from gitwright.api.errors import InvalidInputError, envelope
from gitwright.common.slug import full_name
from gitwright.operations.commands import FileChange, OperationKind
from gitwright.operations.errors import RepositoryNotFoundError
from gitwright.storage.store import DEFAULT_RECENT_LIMIT

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from gitwright.operations.service import OperationOrchestrator
    from gitwright.storage.models import GitOperation
    from gitwright.storage.store import OperationStore

__all__ = [
    "CloneResource",
    "CommitResource",
    "OperationResource",
    "OperationsResource",
    "RepositoryOperationsResource",
    "serialize_operation",
]

MAX_RECENT_LIMIT = 100


class OperationRequest(msgspec.Struct, kw_only=True):
    """Body of ``POST /operations``."""

    type: str
    repository: str
    branch: str | None = None
    message: str | None = None
    files: list[FileChange] = msgspec.field(default_factory=list)


class CloneRequest(msgspec.Struct, kw_only=True):
    """Body of ``POST /operations/clone``."""

    repository: str
    branch: str | None = None


class CommitRequest(msgspec.Struct, kw_only=True):
    """Body of ``POST /operations/commit``."""

    repository: str
    message: str
    branch: str | None = None
    files: list[FileChange] = msgspec.field(default_factory=list)


async def _decode_body[T](req: Request, body_type: type[T]) -> T:
    raw = await req.stream.read()
    try:
        return msgspec.json.decode(raw, type=body_type)
    except msgspec.ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc
    except msgspec.DecodeError as exc:
        raise InvalidInputError("request body must be a JSON object") from exc


def serialize_operation(
    operation: GitOperation, repository: str | None = None
) -> dict[str, typ.Any]:
    """Serialize a ``GitOperation`` to a JSON-compatible dict.

    Parameters
    ----------
    operation
        The stored operation.
    repository
        Repository full name; read from ``operation.repository`` when omitted,
        which must then be loaded.

    """
    completed_at = operation.completed_at
    return {
        "id": operation.id,
        "type": operation.operation_type,
        "status": operation.status,
        "result": operation.result,
        "branch": operation.branch,
        "repository": repository or operation.repository.full_name,
        "created_at": operation.created_at.isoformat(),
        "completed_at": completed_at.isoformat() if completed_at else None,
    }


def _accepted(resp: Response, operation: GitOperation) -> None:
    resp.media = envelope(serialize_operation(operation))
    resp.status = falcon.HTTP_202


class OperationsResource:
    """``POST /operations``."""

    def __init__(self, orchestrator: OperationOrchestrator) -> None:
        """Bind the resource to the orchestrator."""
        self._orchestrator = orchestrator

    async def on_post(self, req: Request, resp: Response) -> None:
        """Submit an operation of any kind."""
        body = await _decode_body(req, OperationRequest)
        operation = await self._orchestrator.submit(
            body.type,
            body.repository,
            branch=body.branch,
            message=body.message,
            files=body.files,
        )
        _accepted(resp, operation)


class CloneResource:
    """``POST /operations/clone``."""

    def __init__(self, orchestrator: OperationOrchestrator) -> None:
        """Bind the resource to the orchestrator."""
        self._orchestrator = orchestrator

    async def on_post(self, req: Request, resp: Response) -> None:
        """Submit a shallow clone."""
        body = await _decode_body(req, CloneRequest)
        operation = await self._orchestrator.submit(
            OperationKind.CLONE, body.repository, branch=body.branch
        )
        _accepted(resp, operation)


class CommitResource:
    """``POST /operations/commit``."""

    def __init__(self, orchestrator: OperationOrchestrator) -> None:
        """Bind the resource to the orchestrator."""
        self._orchestrator = orchestrator

    async def on_post(self, req: Request, resp: Response) -> None:
        """Submit a commit-and-push; a blank message is rejected."""
        body = await _decode_body(req, CommitRequest)
        if not body.message.strip():
            raise InvalidInputError("must not be empty", field="message")
        operation = await self._orchestrator.submit(
            OperationKind.COMMIT,
            body.repository,
            branch=body.branch,
            message=body.message,
            files=body.files,
        )
        _accepted(resp, operation)


class OperationResource:
    """``GET`` and ``DELETE /operations/{operation_id}``."""

    def __init__(self, orchestrator: OperationOrchestrator) -> None:
        """Bind the resource to the orchestrator."""
        self._orchestrator = orchestrator

    async def on_get(
        self, _req: Request, resp: Response, *, operation_id: int
    ) -> None:
        """Return one operation or 404."""
        operation = await self._orchestrator.get_operation(operation_id)
        resp.media = envelope(serialize_operation(operation))
        resp.status = falcon.HTTP_200

    async def on_delete(
        self, _req: Request, resp: Response, *, operation_id: int
    ) -> None:
        """Cancel an operation; ``cancelled`` is false once it has finished."""
        cancelled = await self._orchestrator.cancel(operation_id)
        resp.media = envelope({"id": operation_id, "cancelled": cancelled})
        resp.status = falcon.HTTP_200


def _parse_limit(req: Request) -> int:
    raw = req.get_param("limit")
    if raw is None:
        return DEFAULT_RECENT_LIMIT
    try:
        limit = int(raw)
    except ValueError as exc:
        raise InvalidInputError("must be an integer", field="limit") from exc
    if not 1 <= limit <= MAX_RECENT_LIMIT:
        reason = f"must be between 1 and {MAX_RECENT_LIMIT}"
        raise InvalidInputError(reason, field="limit")
    return limit


class RepositoryOperationsResource:
    """``GET /repositories/{owner}/{name}/operations``."""

    def __init__(
        self, orchestrator: OperationOrchestrator, store: OperationStore
    ) -> None:
        """Bind the resource to the orchestrator and store."""
        self._orchestrator = orchestrator
        self._store = store

    async def on_get(
        self, req: Request, resp: Response, *, owner: str, name: str
    ) -> None:
        """List recent operations of a known repository."""
        limit = _parse_limit(req)
        slug = full_name(owner, name)
        if await self._store.get_repository_by_full_name(slug) is None:
            raise RepositoryNotFoundError(slug)
        operations = await self._orchestrator.recent_operations(slug, limit=limit)
        resp.media = envelope([serialize_operation(op, slug) for op in operations])
        resp.status = falcon.HTTP_200
