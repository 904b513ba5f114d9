"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gitwright.storage import OperationStore, enable_sqlite_foreign_keys, init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


async def _setup_sqlite(url: str) -> AsyncEngine:
    """Create a SQLite engine with foreign keys on and the schema in place."""
    engine = create_async_engine(url)
    enable_sqlite_foreign_keys(engine)
    try:
        await init_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return the URL of a per-test SQLite database file."""
    return f"sqlite+aiosqlite:///{tmp_path / 'gitwright_test.db'}"


@pytest_asyncio.fixture
async def session_factory(
    database_url: str,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(database_url)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> OperationStore:
    """Return an Operation Store bound to the test database."""
    return OperationStore(session_factory)
