"""Falcon ASGI middleware: request-scoped sessions and lifespan hooks.

``SQLAlchemySessionManager`` attaches a fresh ``AsyncSession`` to
``req.context.session`` for read resources and finalises it after the
response. ``LifespanHooks`` runs startup and shutdown coroutines from the
ASGI lifespan protocol, which is how the runtime creates the schema and
closes HTTP clients.

Usage
-----
Register the middleware when creating the Falcon app::

    session_mw = SQLAlchemySessionManager(session_factory)
    app = falcon.asgi.App(middleware=[session_mw, LifespanHooks()])

"""

from __future__ import annotations

import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from gitwright.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    LifespanHook = cabc.Callable[[], cabc.Awaitable[None]]

__all__ = ["LifespanHooks", "SQLAlchemySessionManager"]

logger = get_logger(__name__)


class SQLAlchemySessionManager:
    """Falcon middleware providing request-scoped async SQLAlchemy sessions.

    On response the session is committed for 2xx/3xx outcomes, rolled back
    otherwise, and always closed to return the connection to the pool.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Initialize the middleware with a session factory."""
        self._session_factory = session_factory

    async def process_request(self, req: Request, _resp: Response) -> None:
        """Attach a fresh ``AsyncSession`` to ``req.context.session``.

        The session is created with a bare ``session_factory()`` call because
        it must stay open until :meth:`process_response`.
        """
        req.context.session = self._session_factory()

    def _should_commit(self, resp: Response, *, req_succeeded: bool) -> bool:
        status = str(resp.status)
        return req_succeeded and not status.startswith(("4", "5"))

    async def _finalize_session(
        self,
        session: AsyncSession,
        resp: Response,
        *,
        req_succeeded: bool,
    ) -> None:
        try:
            if session.is_active:
                if self._should_commit(resp, req_succeeded=req_succeeded):
                    await session.commit()
                else:
                    await session.rollback()
        except SQLAlchemyError:
            log_error(
                logger,
                "Session cleanup failed during process_response",
                exc_info=True,
            )
            if session.is_active:
                await session.rollback()
            raise
        finally:
            await session.close()

    async def process_response(
        self,
        req: Request,
        resp: Response,
        _resource: object,
        req_succeeded: bool,  # noqa: FBT001 - Falcon middleware signature
    ) -> None:
        """Commit on success, rollback on error, close always."""
        session: AsyncSession | None = getattr(req.context, "session", None)
        if session is None:
            return

        await self._finalize_session(session, resp, req_succeeded=req_succeeded)


class LifespanHooks:
    """Run coroutines on ASGI lifespan startup and shutdown.

    Shutdown hooks run in reverse registration order; a failing hook is
    logged and does not stop the others.
    """

    def __init__(
        self,
        *,
        startup: cabc.Sequence[LifespanHook] = (),
        shutdown: cabc.Sequence[LifespanHook] = (),
    ) -> None:
        """Store the hooks."""
        self._startup = list(startup)
        self._shutdown = list(shutdown)

    async def process_startup(self, _scope: dict[str, typ.Any], _event: object) -> None:
        """Run startup hooks in order; a failure aborts startup."""
        for hook in self._startup:
            await hook()
        log_info(logger, "Startup complete (%d hooks)", len(self._startup))

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: object
    ) -> None:
        """Run shutdown hooks, logging failures."""
        for hook in reversed(self._shutdown):
            try:
                await hook()
            except Exception:  # noqa: BLE001 - keep closing the remaining resources
                log_error(logger, "Shutdown hook failed", exc_info=True)
