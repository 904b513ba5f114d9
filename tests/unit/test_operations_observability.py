"""Unit tests for operation lifecycle log events."""

from __future__ import annotations

import pytest

from gitwright.operations import OperationEventLogger, OperationEventType
from tests.helpers.femtologging_capture import capture_femto_logs

_LOGGER = "gitwright.operations.observability"


class TestOperationEventLogger:
    """Tests for ``OperationEventLogger`` structured log events."""

    @pytest.fixture
    def logger_instance(self) -> OperationEventLogger:
        """Return a fresh operation event logger."""
        return OperationEventLogger()

    def test_log_submitted_emits_info(
        self, logger_instance: OperationEventLogger
    ) -> None:
        """Submissions are logged at INFO with kind and repository."""
        with capture_femto_logs(_LOGGER) as capture:
            logger_instance.log_submitted(
                operation_id=7, kind="clone", repository="octo/reef"
            )
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "INFO"
            assert OperationEventType.SUBMITTED in record.message
            assert "operation_id=7" in record.message
            assert "kind=clone" in record.message
            assert "repository=octo/reef" in record.message

    def test_log_completed_reports_steps_and_duration(
        self, logger_instance: OperationEventLogger
    ) -> None:
        """Completion events carry step count and duration."""
        with capture_femto_logs(_LOGGER) as capture:
            logger_instance.log_completed(
                operation_id=7, repository="octo/reef", steps=2, duration_ms=1500
            )
            capture.wait_for_count(1)
            record = capture.records[0]
            assert OperationEventType.COMPLETED in record.message
            assert "steps=2" in record.message
            assert "duration_ms=1500" in record.message

    def test_log_failed_emits_warning_with_error_type(
        self, logger_instance: OperationEventLogger
    ) -> None:
        """Failures are WARN level and name only the error class."""
        with capture_femto_logs(_LOGGER) as capture:
            logger_instance.log_failed(
                operation_id=7, repository="octo/reef", error_type="CommandFailedError"
            )
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level in {"WARN", "WARNING"}
            assert OperationEventType.FAILED in record.message
            assert "error_type=CommandFailedError" in record.message

    def test_log_cancelled(self, logger_instance: OperationEventLogger) -> None:
        """Cancellations are logged with their event type."""
        with capture_femto_logs(_LOGGER) as capture:
            logger_instance.log_cancelled(operation_id=7, repository="octo/reef")
            capture.wait_for_count(1)
            assert OperationEventType.CANCELLED in capture.records[0].message
