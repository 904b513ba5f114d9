"""Build full ``AppDependencies`` from a session factory and the environment.

The Dramatiq actor assembles the same collaborators per invocation; this
factory does it once per API process and registers the lifespan hooks that
create the schema and close HTTP clients.

Usage
-----
Build dependencies for the API layer::

    deps = build_dependencies(engine, session_factory, database_url=url)
    app = create_app(deps)

"""

from __future__ import annotations

import typing as typ

from gitwright.executor.client import ExecutionWorkerClient
from gitwright.executor.config import WorkerClientConfig
from gitwright.github.factory import credential_provider_from_env
from gitwright.logging import get_logger, log_info
from gitwright.operations.config import DispatchMode, OperationsConfig
from gitwright.operations.dispatch import DramatiqDispatcher, TaskDispatcher
from gitwright.operations.service import (
    OperationOrchestrator,
    OrchestratorDependencies,
)
from gitwright.storage.models import init_storage
from gitwright.storage.store import OperationStore
from gitwright.webhooks.config import WebhookConfig
from gitwright.webhooks.service import WebhookIngestor

from .app import AppDependencies

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from gitwright.operations.dispatch import OperationDispatcher

__all__ = ["build_dependencies"]

logger = get_logger(__name__)


def build_dependencies(
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    database_url: str,
) -> AppDependencies:
    """Assemble store, orchestrator and webhook ingestor from the environment.

    Parameters
    ----------
    engine
        Engine the schema is created on at startup and disposed at shutdown.
    session_factory
        Async session factory bound to ``engine``.
    database_url
        Sent to Dramatiq consumers when ``GITWRIGHT_OPERATION_DISPATCH`` is
        ``dramatiq``.

    Raises
    ------
    ConfigurationError
        If an operations or webhook setting is malformed, or a webhook secret
        is required but missing.

    """
    operations_config = OperationsConfig.from_env()
    webhook_config = WebhookConfig.from_env()

    store = OperationStore(session_factory)
    credentials = credential_provider_from_env()
    worker = ExecutionWorkerClient(WorkerClientConfig.from_env())

    task_dispatcher: TaskDispatcher | None = None
    dispatcher: OperationDispatcher
    if operations_config.dispatch is DispatchMode.DRAMATIQ:
        dispatcher = DramatiqDispatcher(database_url)
    else:
        task_dispatcher = TaskDispatcher()
        dispatcher = task_dispatcher

    orchestrator = OperationOrchestrator(
        OrchestratorDependencies(store=store, credentials=credentials, worker=worker),
        config=operations_config,
        dispatcher=dispatcher,
    )
    ingestor = WebhookIngestor(store, credentials, webhook_config)

    async def create_schema() -> None:
        await init_storage(engine)
        log_info(logger, "Storage initialised (dispatch=%s)", operations_config.dispatch)

    async def drain_tasks() -> None:
        if task_dispatcher is not None:
            await task_dispatcher.drain()

    return AppDependencies(
        session_factory=session_factory,
        store=store,
        orchestrator=orchestrator,
        webhook_ingestor=ingestor,
        startup=(create_schema,),
        # Shutdown hooks run in reverse: drain first, dispose the engine last.
        shutdown=(engine.dispose, credentials.aclose, worker.aclose, drain_tasks),
    )
