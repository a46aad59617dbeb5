"""TaskMaster data models."""

from taskmaster.models.enums import (
    SortDirection,
    TaskPriority,
    TaskSortBy,
    TaskStatus,
)
from taskmaster.models.task import (
    CreateTaskModel,
    PagedResult,
    Tag,
    Task,
    TaskQuery,
    UpdateTaskModel,
)

__all__ = [
    "CreateTaskModel",
    "PagedResult",
    "SortDirection",
    "Tag",
    "Task",
    "TaskPriority",
    "TaskQuery",
    "TaskSortBy",
    "TaskStatus",
    "UpdateTaskModel",
]
