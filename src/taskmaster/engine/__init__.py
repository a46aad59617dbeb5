"""TaskMaster engine - task queries, mutations and concurrency control."""

from taskmaster.engine.core import TaskMasterEngine
from taskmaster.engine.errors import (
    ConcurrencyConflict,
    NotFoundError,
    TagNotFound,
    TaskMasterError,
    TaskNotFound,
    UnauthorizedError,
    ValidationFailure,
)
from taskmaster.engine.guard import GuardResult, check_version

__all__ = [
    "ConcurrencyConflict",
    "GuardResult",
    "NotFoundError",
    "TagNotFound",
    "TaskMasterEngine",
    "TaskMasterError",
    "TaskNotFound",
    "UnauthorizedError",
    "ValidationFailure",
    "check_version",
]
