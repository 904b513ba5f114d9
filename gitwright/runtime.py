"""Gitwright API runtime entrypoint.

This module provides the ASGI application factory used by Granian. When
``GITWRIGHT_DATABASE_URL`` is set, the runtime builds full
``AppDependencies`` so the app serves operations, webhooks and
installations; otherwise it starts in health-only mode.

Configuration is driven by environment variables:

- ``GITWRIGHT_HOST``: Bind address (default ``0.0.0.0``)
- ``GITWRIGHT_PORT``: Listen port (default ``8080``)
- ``GITWRIGHT_LOG_LEVEL``: Log level (default ``INFO``)
- ``GITWRIGHT_DATABASE_URL``: Database connection URL (optional; enables
  domain endpoints when set)

Run the service directly with ``python -m gitwright.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from gitwright.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main", "parse_port"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def parse_port(port_str: str, env_var: str = "GITWRIGHT_PORT") -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        # Use error() not exception() - validation failures need no traceback
        log_error(
            logger,
            "Invalid %s value: %r (must be %d-%d): %s",
            env_var,
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def configure_runtime_logging(env_var: str) -> str:
    """Configure femtologging from ``env_var`` and return the level used."""
    log_level_str = os.environ.get(env_var, "INFO")
    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid %s %r, falling back to %s",
            env_var,
            log_level_str,
            normalized_level,
        )
    return normalized_level


def create_app() -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    When ``GITWRIGHT_DATABASE_URL`` is set, builds the store, orchestrator
    and webhook ingestor; the schema is created on ASGI startup. Otherwise
    only ``/health`` and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    from gitwright.api.app import create_app as _create_api_app

    database_url = os.environ.get("GITWRIGHT_DATABASE_URL")

    if database_url is None:
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from gitwright.api.factory import build_dependencies
    from gitwright.storage.models import enable_sqlite_foreign_keys

    engine = create_async_engine(database_url)
    enable_sqlite_foreign_keys(engine)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    deps = build_dependencies(engine, session_factory, database_url=database_url)
    return _create_api_app(deps)


def main() -> None:
    """Start the Gitwright API server using Granian.

    Reads ``GITWRIGHT_HOST``, ``GITWRIGHT_PORT``, and ``GITWRIGHT_LOG_LEVEL``
    from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("GITWRIGHT_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = parse_port(os.environ.get("GITWRIGHT_PORT", "8080"))
    normalized_level = configure_runtime_logging("GITWRIGHT_LOG_LEVEL")

    log_info(
        logger,
        "Starting Gitwright API on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "gitwright.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
