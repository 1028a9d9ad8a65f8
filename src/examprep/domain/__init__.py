"""
Domain layer for examprep.

- states: TaskStatus / TaskType enums
- models: Pydantic models for users, the access file and API output
- errors: domain-level exceptions
"""

from .states import TaskStatus, TaskType
from .models import (
    AccessFileEntry,
    AccessLevelUpdate,
    AccessLevelView,
    ErrorResponse,
    QueueStateView,
    SyncReport,
    TaskView,
    UserRecord,
)
from .errors import (
    ExamPrepError,
    ValidationError,
    NotFoundError,
    ConflictError,
    DependencyError,
)

__all__ = [
    "TaskStatus",
    "TaskType",
    "AccessFileEntry",
    "AccessLevelUpdate",
    "AccessLevelView",
    "ErrorResponse",
    "QueueStateView",
    "SyncReport",
    "TaskView",
    "UserRecord",
    "ExamPrepError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "DependencyError",
]
