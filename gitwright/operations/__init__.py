"""Operation Orchestrator: validated, serialised git operations."""

from __future__ import annotations

from .commands import (
    CommandPlan,
    CommandStep,
    FileChange,
    OperationKind,
    PlanContext,
    build_plan,
)
from .config import DispatchMode, OperationsConfig
from .dispatch import DramatiqDispatcher, OperationDispatcher, TaskDispatcher
from .errors import (
    CANCELLED_MESSAGE,
    InvalidOperationError,
    OperationCancelledError,
    OperationNotFoundError,
    RepositoryNotFoundError,
)
from .locks import FileRepositoryLocks, RepositoryLockRegistry, RepositoryLocks
from .observability import OperationEventLogger, OperationEventType
from .service import OperationOrchestrator, OrchestratorDependencies

__all__ = [
    "CANCELLED_MESSAGE",
    "CommandPlan",
    "CommandStep",
    "DispatchMode",
    "DramatiqDispatcher",
    "FileChange",
    "FileRepositoryLocks",
    "InvalidOperationError",
    "OperationCancelledError",
    "OperationDispatcher",
    "OperationEventLogger",
    "OperationEventType",
    "OperationKind",
    "OperationNotFoundError",
    "OperationOrchestrator",
    "OperationsConfig",
    "OrchestratorDependencies",
    "PlanContext",
    "RepositoryLockRegistry",
    "RepositoryLocks",
    "RepositoryNotFoundError",
    "TaskDispatcher",
    "build_plan",
]
