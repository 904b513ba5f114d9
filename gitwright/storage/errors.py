"""Operation Store error types."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime is bound to a UTC column."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing column."""
        super().__init__(f"{context} must be timezone aware")

    @classmethod
    def for_column(cls) -> TimezoneAwareRequiredError:
        """Return an error for a naive value bound to a timestamp column."""
        return cls("timestamp column values")


class InvalidTransitionError(RuntimeError):
    """Raised when an operation is moved along an edge the state machine lacks."""

    def __init__(self, operation_id: int, current: str, target: str) -> None:
        """Record the offending edge for diagnostics."""
        self.operation_id = operation_id
        self.current = current
        self.target = target
        super().__init__(
            f"operation {operation_id} cannot move from {current} to {target}"
        )


class OperationMissingError(LookupError):
    """Raised when a store mutation targets an operation id that does not exist."""

    def __init__(self, operation_id: int) -> None:
        """Record the missing id."""
        self.operation_id = operation_id
        super().__init__(f"git operation {operation_id} does not exist")
