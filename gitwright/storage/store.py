"""Async persistence service behind the orchestrator and webhook ingestor."""

from __future__ import annotations

import typing as typ

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import selectinload

from gitwright.common.time import utcnow
from gitwright.storage.errors import OperationMissingError
from gitwright.storage.models import (
    GitOperation,
    Installation,
    OperationStatus,
    Repository,
    WebhookEvent,
)
from gitwright.storage.records import InstallationSyncResult

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from gitwright.storage.records import InstallationRecord, RepositoryRecord

DEFAULT_RECENT_LIMIT = 20


class OperationStore:
    """Transactional access to installations, repositories, events and operations.

    Every public coroutine opens and commits its own session, so callers never
    hold a transaction across a slow network call to GitHub or the execution
    worker.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for each unit of work."""
        self._session_factory = session_factory

    # Installations and repositories

    async def upsert_installation(
        self,
        installation: InstallationRecord,
        repositories: cabc.Sequence[RepositoryRecord],
    ) -> InstallationSyncResult:
        """Create or refresh an installation and replace its repository set.

        Repositories missing from ``repositories`` are removed together with
        their operations.

        Parameters
        ----------
        installation
            Installation metadata from GitHub.
        repositories
            Complete list of repositories the installation can reach.

        Returns
        -------
        InstallationSyncResult
            Counts of created, updated and removed repositories.

        """
        result = InstallationSyncResult(installation_id=installation.id)
        async with self._session_factory() as session, session.begin():
            row = await session.get(Installation, installation.id)
            if row is None:
                row = Installation(id=installation.id)
                session.add(row)
                result.created = True
            row.account_id = installation.account_id
            row.account_login = installation.account_login
            row.account_type = installation.account_type
            row.permissions = dict(installation.permissions)
            row.updated_at = utcnow()
            await session.flush()

            await self._sync_repositories(session, installation.id, repositories, result)
        return result

    async def _sync_repositories(
        self,
        session: AsyncSession,
        installation_id: int,
        repositories: cabc.Sequence[RepositoryRecord],
        result: InstallationSyncResult,
    ) -> None:
        wanted = {repo.id: repo for repo in repositories}
        names = [repo.full_name for repo in repositories]
        existing = (
            await session.scalars(
                select(Repository).where(
                    or_(
                        Repository.installation_id == installation_id,
                        Repository.id.in_(list(wanted)),
                        Repository.full_name.in_(names),
                    )
                )
            )
        ).all()

        stale: list[int] = []
        current: dict[int, Repository] = {}
        for repo in existing:
            if repo.id in wanted:
                current[repo.id] = repo
            else:
                stale.append(repo.id)

        if stale:
            await self._delete_repositories(session, stale)
            result.repositories_removed = len(stale)

        for repo_id, record in wanted.items():
            repo = current.get(repo_id)
            if repo is None:
                session.add(
                    Repository(
                        id=record.id,
                        installation_id=installation_id,
                        name=record.name,
                        full_name=record.full_name,
                        owner_login=record.owner_login,
                        private=record.private,
                        clone_url=record.clone_url,
                    )
                )
                result.repositories_created += 1
                continue
            if _apply_repository_record(repo, installation_id, record):
                result.repositories_updated += 1

    async def _delete_repositories(
        self, session: AsyncSession, repository_ids: list[int]
    ) -> None:
        await session.execute(
            delete(GitOperation).where(GitOperation.repository_id.in_(repository_ids))
        )
        await session.execute(
            update(WebhookEvent)
            .where(WebhookEvent.repository_id.in_(repository_ids))
            .values(repository_id=None)
        )
        await session.execute(
            delete(Repository).where(Repository.id.in_(repository_ids))
        )
        await session.flush()

    async def delete_installation(
        self, installation_id: int, *, keep_event_id: int | None = None
    ) -> bool:
        """Remove an installation with its repositories, operations and events.

        Rows are deleted children first so the outcome does not depend on the
        database enforcing ``ON DELETE CASCADE``. The event named by
        ``keep_event_id`` is detached instead of deleted so the uninstall
        delivery itself remains on record.

        Returns
        -------
        bool
            ``False`` when the installation was not known.

        """
        async with self._session_factory() as session, session.begin():
            installation = await session.get(Installation, installation_id)
            if installation is None:
                return False

            repo_ids = list(
                (
                    await session.scalars(
                        select(Repository.id).where(
                            Repository.installation_id == installation_id
                        )
                    )
                ).all()
            )
            related_events = or_(
                WebhookEvent.installation_id == installation_id,
                WebhookEvent.repository_id.in_(repo_ids),
            )
            if keep_event_id is not None:
                await session.execute(
                    update(WebhookEvent)
                    .where(WebhookEvent.id == keep_event_id)
                    .values(installation_id=None, repository_id=None)
                )
            await session.execute(
                delete(GitOperation).where(GitOperation.repository_id.in_(repo_ids))
            )
            await session.execute(delete(WebhookEvent).where(related_events))
            await session.execute(
                delete(Repository).where(Repository.installation_id == installation_id)
            )
            await session.execute(
                delete(Installation).where(Installation.id == installation_id)
            )
        return True

    async def get_installation(self, installation_id: int) -> Installation | None:
        """Return the installation with ``installation_id`` if known."""
        async with self._session_factory() as session:
            return await session.get(Installation, installation_id)

    async def list_installations(self) -> list[Installation]:
        """Return every known installation ordered by id."""
        async with self._session_factory() as session:
            rows = await session.scalars(select(Installation).order_by(Installation.id))
            return list(rows.all())

    async def list_installation_repositories(
        self, installation_id: int
    ) -> list[Repository]:
        """Return the repositories of one installation ordered by full name."""
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(Repository)
                .where(Repository.installation_id == installation_id)
                .order_by(Repository.full_name)
            )
            return list(rows.all())

    async def get_repository_by_full_name(self, full_name: str) -> Repository | None:
        """Return the repository stored under ``owner/name``."""
        async with self._session_factory() as session:
            return await session.scalar(
                select(Repository).where(Repository.full_name == full_name)
            )

    # Webhook events

    async def record_webhook_event(
        self,
        *,
        event_type: str,
        action: str | None,
        payload: dict[str, typ.Any],
        installation_id: int | None = None,
        repository_id: int | None = None,
    ) -> int:
        """Append a webhook event and return its id.

        References to installations or repositories that are not stored yet
        are dropped so the insert never trips a foreign key; the raw payload
        still carries them.
        """
        async with self._session_factory() as session, session.begin():
            if (
                installation_id is not None
                and await session.get(Installation, installation_id) is None
            ):
                installation_id = None
            if (
                repository_id is not None
                and await session.get(Repository, repository_id) is None
            ):
                repository_id = None
            row = WebhookEvent(
                event_type=event_type,
                action=action,
                payload=payload,
                installation_id=installation_id,
                repository_id=repository_id,
            )
            session.add(row)
            await session.flush()
            return row.id

    async def mark_webhook_processed(self, event_id: int) -> None:
        """Flag a webhook event as handled."""
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(WebhookEvent)
                .where(WebhookEvent.id == event_id)
                .values(processed=True)
            )

    async def get_webhook_event(self, event_id: int) -> WebhookEvent | None:
        """Return a stored webhook event."""
        async with self._session_factory() as session:
            return await session.get(WebhookEvent, event_id)

    # Operations

    async def create_operation(
        self,
        *,
        repository_id: int,
        kind: str,
        branch: str,
        parameters: dict[str, typ.Any] | None = None,
    ) -> GitOperation:
        """Insert a ``pending`` operation and return it."""
        async with self._session_factory() as session, session.begin():
            operation = GitOperation(
                operation_type=kind,
                repository_id=repository_id,
                branch=branch,
                status=OperationStatus.PENDING,
                parameters=parameters or {},
            )
            session.add(operation)
            await session.flush()
            return operation

    async def mark_running(self, operation_id: int) -> GitOperation:
        """Move an operation from ``pending`` to ``running``."""
        return await self._transition(operation_id, OperationStatus.RUNNING)

    async def mark_completed(self, operation_id: int, result: str) -> GitOperation:
        """Move a running operation to ``completed`` storing its output."""
        return await self._transition(
            operation_id, OperationStatus.COMPLETED, result=result
        )

    async def mark_failed(self, operation_id: int, message: str) -> GitOperation:
        """Move a running operation to ``failed`` storing the diagnostic."""
        return await self._transition(
            operation_id, OperationStatus.FAILED, result=message
        )

    async def _transition(
        self,
        operation_id: int,
        target: OperationStatus,
        *,
        result: str | None = None,
    ) -> GitOperation:
        async with self._session_factory() as session, session.begin():
            operation = await session.get(
                GitOperation, operation_id, with_for_update=True
            )
            if operation is None:
                raise OperationMissingError(operation_id)
            operation.transition_to(target, result=result)
            return operation

    async def get_operation(self, operation_id: int) -> GitOperation | None:
        """Return an operation with its repository loaded."""
        async with self._session_factory() as session:
            return await session.scalar(
                select(GitOperation)
                .options(selectinload(GitOperation.repository))
                .where(GitOperation.id == operation_id)
            )

    async def recent_operations(
        self, full_name: str, *, limit: int = DEFAULT_RECENT_LIMIT
    ) -> list[GitOperation]:
        """Return a repository's most recent operations, newest first."""
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(GitOperation)
                .join(Repository, GitOperation.repository_id == Repository.id)
                .where(Repository.full_name == full_name)
                .order_by(GitOperation.created_at.desc(), GitOperation.id.desc())
                .limit(limit)
            )
            return list(rows.all())


def _apply_repository_record(
    repo: Repository, installation_id: int, record: RepositoryRecord
) -> bool:
    """Copy changed fields from ``record`` onto ``repo``; return whether any changed."""
    changed = False
    for attr, value in (
        ("installation_id", installation_id),
        ("name", record.name),
        ("full_name", record.full_name),
        ("owner_login", record.owner_login),
        ("private", record.private),
        ("clone_url", record.clone_url),
    ):
        if getattr(repo, attr) != value:
            setattr(repo, attr, value)
            changed = True
    return changed
