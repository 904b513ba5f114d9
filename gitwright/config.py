"""Environment parsing shared by Gitwright's configuration dataclasses.

Each package keeps its own frozen ``*Config`` dataclass with a ``from_env``
constructor; this module only provides the parsing helpers and the
:class:`ConfigurationError` they raise.

Usage
-----
>>> import os
>>> os.environ["GITWRIGHT_OPERATION_TIMEOUT_MS"] = "60000"
>>> env_positive_int("GITWRIGHT_OPERATION_TIMEOUT_MS", 300_000)
60000

"""

from __future__ import annotations

import os

ENV_PREFIX = "GITWRIGHT_"

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


class ConfigurationError(RuntimeError):
    """Raised when required configuration is absent or malformed.

    Configuration errors are fatal for the request that hits them and are
    reported to API callers as HTTP 500 without the underlying detail.
    """

    @classmethod
    def missing(cls, env_var: str) -> ConfigurationError:
        """Return an error for a required variable that is unset or blank."""
        return cls(f"{env_var} is required")

    @classmethod
    def invalid(cls, env_var: str, reason: str) -> ConfigurationError:
        """Return an error for a variable holding an unusable value."""
        return cls(f"{env_var} {reason}")


def env_str(env_var: str, default: str | None = None) -> str | None:
    """Return a stripped env value, or ``default`` when unset or blank."""
    raw = os.environ.get(env_var, "").strip()
    return raw or default


def env_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer env var, falling back to ``default``.

    Raises
    ------
    ConfigurationError
        If the variable is set to something other than a positive integer.

    """
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError.invalid(
            env_var, f"must be an integer, got: {raw!r}"
        ) from exc
    if value < 1:
        raise ConfigurationError.invalid(env_var, f"must be positive, got: {value}")
    return value


def env_positive_float(env_var: str, default: float) -> float:
    """Read a positive number env var, falling back to ``default``."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError.invalid(
            env_var, f"must be a number, got: {raw!r}"
        ) from exc
    if value <= 0:
        raise ConfigurationError.invalid(env_var, f"must be positive, got: {value}")
    return value


def env_flag(env_var: str, *, default: bool = False) -> bool:
    """Read a boolean env var such as ``1``/``true`` or ``0``/``false``."""
    raw = os.environ.get(env_var, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ConfigurationError.invalid(env_var, f"must be a boolean, got: {raw!r}")


__all__ = [
    "ENV_PREFIX",
    "ConfigurationError",
    "env_flag",
    "env_positive_float",
    "env_positive_int",
    "env_str",
]
