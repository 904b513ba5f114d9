"""Execution worker runtime entrypoint.

Configuration is driven by environment variables:

- ``GITWRIGHT_WORKER_HOST``: Bind address (default ``0.0.0.0``)
- ``GITWRIGHT_WORKER_PORT``: Listen port (default ``8081``)
- ``GITWRIGHT_WORKER_WORKSPACE``: Default working directory (``/workspace``)
- ``GITWRIGHT_WORKER_TIMEOUT_MS``: Default command timeout (300000)
- ``GITWRIGHT_WORKER_GRACE_S``: SIGTERM to SIGKILL delay (5)
- ``GITWRIGHT_LOG_LEVEL``: Log level (default ``INFO``)

Run the worker directly with ``python -m gitwright.executor.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from gitwright.logging import get_logger, log_info
from gitwright.runtime import configure_runtime_logging, parse_port

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)


def create_app() -> falcon.asgi.App:
    """Create the worker application from ``GITWRIGHT_WORKER_*`` variables."""
    from gitwright.executor.app import create_worker_app
    from gitwright.executor.config import WorkerConfig

    return create_worker_app(WorkerConfig.from_env())


def main() -> None:
    """Start the execution worker using Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("GITWRIGHT_WORKER_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = parse_port(
        os.environ.get("GITWRIGHT_WORKER_PORT", "8081"), "GITWRIGHT_WORKER_PORT"
    )
    normalized_level = configure_runtime_logging("GITWRIGHT_LOG_LEVEL")

    log_info(
        logger,
        "Starting Gitwright execution worker on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "gitwright.executor.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
