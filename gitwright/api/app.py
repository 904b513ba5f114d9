"""Application factory for the Gitwright Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application with health endpoints and, when domain dependencies are
available, the operation, webhook and installation endpoints.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with domain endpoints::

    deps = AppDependencies(
        session_factory=session_factory,
        store=store,
        orchestrator=orchestrator,
        webhook_ingestor=ingestor,
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from gitwright.api.errors import register_error_handlers
from gitwright.api.health.resources import HealthResource, ReadyResource
from gitwright.api.middleware import LifespanHooks

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from gitwright.operations.service import OperationOrchestrator
    from gitwright.storage.store import OperationStore
    from gitwright.webhooks.service import WebhookIngestor

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    When every collaborator is provided the application includes session
    middleware and domain endpoints. Otherwise only health endpoints are
    registered.

    Attributes
    ----------
    session_factory
        Async session factory for database access.
    store
        Operation store shared by the orchestrator and read resources.
    orchestrator
        Submits, executes and cancels git operations.
    webhook_ingestor
        Verifies and applies GitHub deliveries.
    startup, shutdown
        Coroutines run on ASGI lifespan events.

    """

    session_factory: async_sessionmaker[AsyncSession] | None = None
    store: OperationStore | None = None
    orchestrator: OperationOrchestrator | None = None
    webhook_ingestor: WebhookIngestor | None = None
    startup: cabc.Sequence[cabc.Callable[[], cabc.Awaitable[None]]] = ()
    shutdown: cabc.Sequence[cabc.Callable[[], cabc.Awaitable[None]]] = ()


class _DomainDependencies(typ.NamedTuple):
    session_factory: async_sessionmaker[AsyncSession]
    store: OperationStore
    orchestrator: OperationOrchestrator
    webhook_ingestor: WebhookIngestor


def _domain_deps(deps: AppDependencies | None) -> _DomainDependencies | None:
    """Return the domain collaborators when all of them are present."""
    if (
        deps is None
        or deps.session_factory is None
        or deps.store is None
        or deps.orchestrator is None
        or deps.webhook_ingestor is None
    ):
        return None
    return _DomainDependencies(
        deps.session_factory, deps.store, deps.orchestrator, deps.webhook_ingestor
    )


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None`` or incomplete, only
        ``/health`` and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    domain = _domain_deps(dependencies)
    middleware: list[object] = []
    if dependencies is not None:
        middleware.append(
            LifespanHooks(
                startup=dependencies.startup, shutdown=dependencies.shutdown
            )
        )
    if domain is not None:
        from gitwright.api.middleware import SQLAlchemySessionManager

        middleware.append(SQLAlchemySessionManager(domain.session_factory))

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    # Health endpoints are always available
    app.add_route("/health", HealthResource())
    app.add_route(
        "/ready", ReadyResource(domain.session_factory if domain else None)
    )

    if domain is not None:
        _add_domain_routes(app, domain)

    register_error_handlers(app)
    return app


def _add_domain_routes(app: falcon.asgi.App, domain: _DomainDependencies) -> None:
    from gitwright.api.installations.resources import (
        InstallationRepositoriesResource,
        InstallationsResource,
    )
    from gitwright.api.operations.resources import (
        CloneResource,
        CommitResource,
        OperationResource,
        OperationsResource,
        RepositoryOperationsResource,
    )
    from gitwright.api.webhooks.resources import WebhookResource

    orchestrator = domain.orchestrator
    app.add_route("/operations", OperationsResource(orchestrator))
    app.add_route("/operations/clone", CloneResource(orchestrator))
    app.add_route("/operations/commit", CommitResource(orchestrator))
    app.add_route("/operations/{operation_id:int}", OperationResource(orchestrator))
    app.add_route(
        "/repositories/{owner}/{name}/operations",
        RepositoryOperationsResource(orchestrator, domain.store),
    )
    app.add_route("/webhooks", WebhookResource(domain.webhook_ingestor))
    app.add_route("/installations", InstallationsResource())
    app.add_route(
        "/installations/{installation_id:int}/repositories",
        InstallationRepositoriesResource(),
    )
