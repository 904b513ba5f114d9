"""Persistence models for installations, repositories, webhooks and operations."""

from __future__ import annotations

import datetime as dt
import enum
import typing as typ

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from gitwright.common.time import utcnow
from gitwright.storage.errors import (
    InvalidTransitionError,
    TimezoneAwareRequiredError,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class OperationStatus(enum.StrEnum):
    """Lifecycle states of a git operation."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return True for states an operation never leaves."""
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({OperationStatus.COMPLETED, OperationStatus.FAILED})

_ALLOWED_TRANSITIONS: dict[OperationStatus, frozenset[OperationStatus]] = {
    OperationStatus.PENDING: frozenset({OperationStatus.RUNNING}),
    OperationStatus.RUNNING: _TERMINAL_STATUSES,
    OperationStatus.COMPLETED: frozenset(),
    OperationStatus.FAILED: frozenset(),
}


class Base(DeclarativeBase):
    """Base declarative class for Gitwright models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_column()
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class Installation(Base):
    """Granted-access relationship between the app and one GitHub account."""

    __tablename__ = "installations"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    account_id: Mapped[int] = mapped_column(BigInteger)
    account_login: Mapped[str] = mapped_column(String(255))
    account_type: Mapped[str] = mapped_column(String(32))
    permissions: Mapped[dict[str, str]] = mapped_column(
        "permissions_json", JSON, default=dict
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    repositories: Mapped[list[Repository]] = relationship(
        back_populates="installation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Repository(Base):
    """Repository reachable through an installation."""

    __tablename__ = "repositories"
    __table_args__ = (Index("ix_repositories_installation", "installation_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    installation_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("installations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(511), unique=True)
    owner_login: Mapped[str] = mapped_column(String(255))
    private: Mapped[bool] = mapped_column(Boolean, default=False)
    clone_url: Mapped[str] = mapped_column(String(1024))
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

    installation: Mapped[Installation] = relationship(back_populates="repositories")
    operations: Mapped[list[GitOperation]] = relationship(
        back_populates="repository",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class WebhookEvent(Base):
    """Append-only record of a verified webhook delivery."""

    __tablename__ = "webhook_events"
    __table_args__ = (Index("ix_webhook_events_installation", "installation_id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(64))
    action: Mapped[str | None] = mapped_column(String(64), default=None)
    installation_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("installations.id", ondelete="CASCADE"),
        nullable=True,
        default=None,
    )
    repository_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("repositories.id", ondelete="CASCADE"),
        nullable=True,
        default=None,
    )
    payload: Mapped[dict[str, typ.Any]] = mapped_column(JSON)
    processed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


class GitOperation(Base):
    """One requested git action and its lifecycle."""

    __tablename__ = "git_operations"
    __table_args__ = (
        Index("ix_git_operations_repo_created", "repository_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    operation_type: Mapped[str] = mapped_column(String(16))
    repository_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    branch: Mapped[str] = mapped_column(String(255), default="main")
    status: Mapped[str] = mapped_column(String(16), default=OperationStatus.PENDING)
    result: Mapped[str | None] = mapped_column(Text(), default=None)
    parameters: Mapped[dict[str, typ.Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    completed_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )

    repository: Mapped[Repository] = relationship(back_populates="operations")

    @property
    def current_status(self) -> OperationStatus:
        """Return ``status`` as an :class:`OperationStatus`."""
        return OperationStatus(self.status)

    def transition_to(
        self,
        target: OperationStatus,
        *,
        result: str | None = None,
        at: dt.datetime | None = None,
    ) -> None:
        """Move the operation to ``target`` if the state machine allows it.

        ``completed_at`` is stamped exactly when ``target`` is terminal.

        Raises
        ------
        InvalidTransitionError
            If ``target`` is not reachable from the current status.

        """
        current = self.current_status
        if target not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(self.id, current, target)
        self.status = target
        if result is not None:
            self.result = result
        if target.is_terminal:
            self.completed_at = at or utcnow()


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on foreign key enforcement for every SQLite connection of ``engine``."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection: typ.Any, _record: object) -> None:  # noqa: ANN401
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


async def init_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
