"""Per-repository mutual exclusion for operation execution.

:class:`RepositoryLocks` serialises operations that share one event loop, as
the API process does with inline dispatch. :class:`FileRepositoryLocks`
serialises across threads and processes on one host, which is what Dramatiq
consumers need: every message runs in its own event loop and the CLI starts
several worker processes by default.
"""

from __future__ import annotations

import asyncio
import contextlib
import fcntl
import typing as typ
from pathlib import Path

if typ.TYPE_CHECKING:
    import collections.abc as cabc

DEFAULT_POLL_INTERVAL_S = 0.05


class RepositoryLockRegistry(typ.Protocol):
    """Anything that can hold a repository exclusively for a block."""

    def hold(self, key: str) -> contextlib.AbstractAsyncContextManager[None]:
        """Hold ``key`` exclusively for the duration of the block."""
        ...


class RepositoryLocks:
    """One ``asyncio.Lock`` per repository full name.

    Locks are created on first use and dropped once nobody holds or waits for
    them, so the registry does not grow with every repository ever touched.
    Serialisation holds within one event loop only.
    """

    def __init__(self) -> None:
        """Start with no locks."""
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        """Return how many repositories currently have a lock in use."""
        return len(self._locks)

    def is_locked(self, key: str) -> bool:
        """Return whether an operation currently holds ``key``."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @contextlib.asynccontextmanager
    async def hold(self, key: str) -> cabc.AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class FileRepositoryLocks:
    """One ``flock`` lock file per repository under ``lock_dir``.

    Each :meth:`hold` opens its own file description, so two holders in the
    same process exclude each other just as holders in different processes
    do. Acquisition polls with ``LOCK_NB`` so a waiter can be cancelled
    without leaving a thread blocked on the lock.

    Parameters
    ----------
    lock_dir
        Directory for lock files; created on first use.
    poll_interval_s
        Delay between attempts while another holder has the repository.

    """

    def __init__(
        self,
        lock_dir: str | Path,
        *,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
    ) -> None:
        """Remember where lock files live."""
        self._lock_dir = Path(lock_dir)
        self._poll_interval_s = poll_interval_s

    def path_for(self, key: str) -> Path:
        """Return the lock file used for repository ``key``."""
        # Full names are validated owner/name pairs; flatten the separator.
        return self._lock_dir / f"{key.replace('/', '__')}.lock"

    @contextlib.asynccontextmanager
    async def hold(self, key: str) -> cabc.AsyncIterator[None]:
        """Hold the lock file for ``key`` for the duration of the block."""
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a") as handle:
            while True:
                try:
                    fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    await asyncio.sleep(self._poll_interval_s)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)


__all__ = [
    "FileRepositoryLocks",
    "RepositoryLockRegistry",
    "RepositoryLocks",
]
