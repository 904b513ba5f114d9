"""Execution Worker error types."""

from __future__ import annotations

_EXCERPT_LIMIT = 500


def stderr_excerpt(stderr: str, limit: int = _EXCERPT_LIMIT) -> str:
    """Return the last ``limit`` characters of ``stderr``, stripped."""
    text = stderr.strip()
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]


class WorkerUnavailableError(RuntimeError):
    """Raised when the execution worker cannot be reached or fails internally."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def unreachable(cls, base_url: str, detail: str) -> WorkerUnavailableError:
        """Return an error for transport failures."""
        return cls(f"Execution worker at {base_url} is unreachable: {detail}")

    @classmethod
    def http_error(cls, status_code: int) -> WorkerUnavailableError:
        """Return an error for 5xx responses from the worker."""
        return cls(
            f"Execution worker returned HTTP {status_code}", status_code=status_code
        )

    @classmethod
    def malformed_response(cls) -> WorkerUnavailableError:
        """Return an error for a response body that is not an exec result."""
        return cls("Execution worker returned an unreadable exec result")


class InvalidExecRequestError(ValueError):
    """Raised when an exec request is malformed or rejected by the worker."""

    def __init__(self, reason: str) -> None:
        """Store the human-readable reason."""
        self.reason = reason
        super().__init__(reason)

    @classmethod
    def duplicate_request_id(cls, request_id: str) -> InvalidExecRequestError:
        """Return an error for a request id that is already running."""
        return cls(f"requestId {request_id!r} is already running")


class ExecutionTimeoutError(RuntimeError):
    """Raised when a command was terminated for exceeding its timeout."""

    def __init__(self, timeout_ms: int, stderr: str = "") -> None:
        """Record the timeout that elapsed."""
        self.timeout_ms = timeout_ms
        detail = stderr_excerpt(stderr)
        message = f"Command timed out after {timeout_ms} ms (exit code 124)"
        super().__init__(f"{message}: {detail}" if detail else message)


class CommandFailedError(RuntimeError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, exit_code: int, stderr: str, *, error: str | None = None) -> None:
        """Record the exit code with a stderr excerpt."""
        self.exit_code = exit_code
        self.stderr = stderr
        detail = error or stderr_excerpt(stderr) or "no output"
        super().__init__(f"Command failed with exit code {exit_code}: {detail}")
