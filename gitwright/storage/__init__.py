"""Operation Store: relational persistence for Gitwright."""

from __future__ import annotations

from .errors import (
    InvalidTransitionError,
    OperationMissingError,
    TimezoneAwareRequiredError,
)
from .models import (
    Base,
    GitOperation,
    Installation,
    OperationStatus,
    Repository,
    UTCDateTime,
    WebhookEvent,
    enable_sqlite_foreign_keys,
    init_storage,
)
from .records import InstallationRecord, InstallationSyncResult, RepositoryRecord
from .store import DEFAULT_RECENT_LIMIT, OperationStore

__all__ = [
    "DEFAULT_RECENT_LIMIT",
    "Base",
    "GitOperation",
    "Installation",
    "InstallationRecord",
    "InstallationSyncResult",
    "InvalidTransitionError",
    "OperationMissingError",
    "OperationStatus",
    "OperationStore",
    "Repository",
    "RepositoryRecord",
    "TimezoneAwareRequiredError",
    "UTCDateTime",
    "WebhookEvent",
    "enable_sqlite_foreign_keys",
    "init_storage",
]
