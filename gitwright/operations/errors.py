"""Operation Orchestrator error types."""

from __future__ import annotations

CANCELLED_MESSAGE = "Operation cancelled"


class RepositoryNotFoundError(LookupError):
    """Raised when an operation targets a repository the store does not know.

    Attributes
    ----------
    full_name
        Repository full name in ``owner/name`` form.

    """

    def __init__(self, full_name: str) -> None:
        """Initialise with the repository full name."""
        self.full_name = full_name
        super().__init__(f"No repository matching '{full_name}' exists.")


class OperationNotFoundError(LookupError):
    """Raised when an operation id does not exist."""

    def __init__(self, operation_id: int) -> None:
        """Initialise with the missing operation id."""
        self.operation_id = operation_id
        super().__init__(f"No git operation with id {operation_id} exists.")


class InvalidOperationError(ValueError):
    """Raised when an operation request cannot be turned into commands.

    Attributes
    ----------
    reason
        Human-readable description of the problem.
    field
        Name of the offending request field, when there is one.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialise with a reason and optional field name."""
        self.reason = reason
        self.field = field
        super().__init__(f"{field}: {reason}" if field is not None else reason)

    @classmethod
    def unknown_kind(cls, kind: str) -> InvalidOperationError:
        """Return an error for an unsupported operation type."""
        return cls(
            f"unsupported operation type {kind!r}; expected clone, pull, push or commit",
            field="type",
        )

    @classmethod
    def unsafe_path(cls, path: str) -> InvalidOperationError:
        """Return an error for a file path escaping the repository."""
        return cls(
            f"path {path!r} must be relative and stay inside the repository",
            field="files",
        )

    @classmethod
    def invalid_branch(cls, branch: str) -> InvalidOperationError:
        """Return an error for a branch name git would reject or misread."""
        return cls(f"invalid branch name {branch!r}", field="branch")


class OperationCancelledError(RuntimeError):
    """Raised when the worker reports that a step was cancelled (exit 130)."""

    def __init__(self, operation_id: int) -> None:
        """Initialise with the cancelled operation id."""
        self.operation_id = operation_id
        super().__init__(CANCELLED_MESSAGE)

