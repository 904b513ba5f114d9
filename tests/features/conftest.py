"""Shared fixtures for BDD feature tests.

Steps are synchronous and drive the async code through ``asyncio.run``, so
each step gets a fresh event loop. The engine therefore uses ``NullPool``:
no connection outlives the loop that opened it.
"""

from __future__ import annotations

import typing as typ

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gitwright.storage import enable_sqlite_foreign_keys, init_storage
from tests.helpers import run_async

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def session_factory(tmp_path: Path) -> typ.Iterator[async_sessionmaker[AsyncSession]]:
    """Provide a per-scenario SQLite database usable from any event loop."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'features.db'}", poolclass=NullPool
    )
    enable_sqlite_foreign_keys(engine)
    run_async(lambda: init_storage(engine))
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        run_async(engine.dispose)
