"""Structured lifecycle events for git operations.

Each event is one log line of the form ``[event.type] key=value ...`` so log
pipelines can filter on the bracketed type.

Usage
-----
>>> event_logger = OperationEventLogger()
>>> event_logger.log_submitted(operation_id=7, kind="clone", repository="octo/reef")

"""

from __future__ import annotations

import enum

from gitwright.logging import get_logger, log_info, log_warning

logger = get_logger(__name__)


class OperationEventType(enum.StrEnum):
    """Structured log event types for the operation lifecycle."""

    SUBMITTED = "operations.operation.submitted"
    STARTED = "operations.operation.started"
    COMPLETED = "operations.operation.completed"
    FAILED = "operations.operation.failed"
    CANCELLED = "operations.operation.cancelled"


class OperationEventLogger:
    """Emit operation lifecycle events via femtologging."""

    def log_submitted(self, *, operation_id: int, kind: str, repository: str) -> None:
        """Log that a pending operation was created and dispatched."""
        log_info(
            logger,
            "[%s] operation_id=%d kind=%s repository=%s",
            OperationEventType.SUBMITTED,
            operation_id,
            kind,
            repository,
        )

    def log_started(self, *, operation_id: int, kind: str, repository: str) -> None:
        """Log that an operation moved to ``running``."""
        log_info(
            logger,
            "[%s] operation_id=%d kind=%s repository=%s",
            OperationEventType.STARTED,
            operation_id,
            kind,
            repository,
        )

    def log_completed(
        self, *, operation_id: int, repository: str, steps: int, duration_ms: int
    ) -> None:
        """Log successful completion with the number of steps run."""
        log_info(
            logger,
            "[%s] operation_id=%d repository=%s steps=%d duration_ms=%d",
            OperationEventType.COMPLETED,
            operation_id,
            repository,
            steps,
            duration_ms,
        )

    def log_failed(
        self, *, operation_id: int, repository: str, error_type: str
    ) -> None:
        """Log a failed operation.

        Only the error class is logged; the stored message may quote command
        output and stays in the database.
        """
        log_warning(
            logger,
            "[%s] operation_id=%d repository=%s error_type=%s",
            OperationEventType.FAILED,
            operation_id,
            repository,
            error_type,
        )

    def log_cancelled(self, *, operation_id: int, repository: str) -> None:
        """Log a cancelled operation."""
        log_info(
            logger,
            "[%s] operation_id=%d repository=%s",
            OperationEventType.CANCELLED,
            operation_id,
            repository,
        )
