"""Broker configuration helpers for the Dramatiq actor.

Dramatiq binds an actor to the global broker when the actor is declared, so
the actor module calls :func:`ensure_broker_configured` before its decorator
runs and again at the start of each invocation.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

from gitwright.config import env_str

_BROKER_LOCK = threading.Lock()
_broker_configured = False


def _is_running_tests() -> bool:
    """Return True when the process runs under pytest."""
    return "pytest" in sys.modules or any(
        key in os.environ
        for key in ["PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS"]
    )


def _should_use_stub_broker() -> bool:
    """Return True when ``GITWRIGHT_ALLOW_STUB_BROKER`` is truthy or under tests."""
    allow_stub = os.environ.get("GITWRIGHT_ALLOW_STUB_BROKER", "")
    return allow_stub.lower() in {"1", "true", "yes"} or _is_running_tests()


def ensure_broker_configured() -> None:
    """Install the broker for the ``git_operations`` queue once per process.

    ``GITWRIGHT_BROKER_URL`` selects a Redis broker. Without it a StubBroker
    is installed for tests and local runs that allow it. Thread-safe: Dramatiq
    worker threads may call this concurrently.

    Raises
    ------
    RuntimeError
        If no broker URL is set and a stub broker is not allowed.

    """
    global _broker_configured

    if _broker_configured:
        return

    with _BROKER_LOCK:
        if _broker_configured:
            return

        url = env_str("GITWRIGHT_BROKER_URL")
        if url is not None:
            from dramatiq.brokers.redis import RedisBroker

            dramatiq.set_broker(RedisBroker(url=url))
        elif _should_use_stub_broker():
            dramatiq.set_broker(StubBroker())
        else:  # pragma: no cover - guard for prod misconfigurations
            message = (
                "No Dramatiq broker configured. "
                "Set GITWRIGHT_BROKER_URL to a Redis URL, or "
                "GITWRIGHT_ALLOW_STUB_BROKER=1 for local/test runs."
            )
            raise RuntimeError(message)

        _broker_configured = True
