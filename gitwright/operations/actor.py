"""Dramatiq actor that executes git operations out of process.

Every message holds a per-repository lock file under ``GITWRIGHT_LOCK_DIR``
while it runs, so operations on one repository run one at a time across all
consumer processes and threads on a host. Every consumer on the host must
share that directory::

    dramatiq gitwright.operations.actor --queues git_operations

Usage
-----
>>> execute_operation_job.send("postgresql+asyncpg://...", 42)

"""

from __future__ import annotations

import asyncio
import threading

import dramatiq
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from gitwright.executor.client import ExecutionWorkerClient
from gitwright.executor.config import WorkerClientConfig
from gitwright.github.factory import credential_provider_from_env
from gitwright.operations._broker import ensure_broker_configured
from gitwright.operations.config import OperationsConfig
from gitwright.operations.locks import FileRepositoryLocks
from gitwright.operations.service import (
    OperationOrchestrator,
    OrchestratorDependencies,
)
from gitwright.storage.models import enable_sqlite_foreign_keys
from gitwright.storage.store import OperationStore

type SessionFactory = async_sessionmaker[AsyncSession]

QUEUE_NAME = "git_operations"

# Module-level caches for reusing engines across actor invocations
_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, SessionFactory] = {}
_CACHE_LOCK = threading.Lock()


def _get_or_create_session_factory(database_url: str) -> SessionFactory:
    """Return the cached session factory for *database_url*.

    Thread-safe: uses a lock to prevent race conditions in Dramatiq workers.
    """
    with _CACHE_LOCK:
        if database_url not in _SESSION_FACTORY_CACHE:
            # Each invocation runs its own event loop, so connections are not pooled.
            engine = create_async_engine(database_url, poolclass=NullPool)
            enable_sqlite_foreign_keys(engine)
            _ENGINE_CACHE[database_url] = engine
            _SESSION_FACTORY_CACHE[database_url] = async_sessionmaker(
                engine, expire_on_commit=False
            )
        return _SESSION_FACTORY_CACHE[database_url]


async def _execute_async(session_factory: SessionFactory, operation_id: int) -> None:
    """Run one operation with per-invocation HTTP clients."""
    config = OperationsConfig.from_env()
    credentials = credential_provider_from_env()
    worker = ExecutionWorkerClient(WorkerClientConfig.from_env())
    orchestrator = OperationOrchestrator(
        OrchestratorDependencies(
            store=OperationStore(session_factory),
            credentials=credentials,
            worker=worker,
        ),
        config=config,
        locks=FileRepositoryLocks(config.lock_dir),
    )
    try:
        await orchestrator.execute(operation_id)
    finally:
        await worker.aclose()
        await credentials.aclose()


ensure_broker_configured()


@dramatiq.actor(queue_name=QUEUE_NAME, max_retries=0)
def execute_operation_job(database_url: str, operation_id: int) -> None:
    """Dramatiq actor that runs a pending operation to a terminal status.

    Parameters
    ----------
    database_url
        SQLAlchemy URL of the operation store.
    operation_id
        Id of the ``pending`` operation to execute.

    """
    ensure_broker_configured()
    session_factory = _get_or_create_session_factory(database_url)
    asyncio.run(_execute_async(session_factory, operation_id))


__all__ = ["QUEUE_NAME", "execute_operation_job"]
