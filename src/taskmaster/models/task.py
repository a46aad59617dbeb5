"""Task model - personal to-do item and its tags."""

from datetime import date, datetime
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

from taskmaster.models.enums import SortDirection, TaskPriority, TaskSortBy, TaskStatus

T = TypeVar("T")

TITLE_MAX_LENGTH = 120
DESCRIPTION_MAX_LENGTH = 2000
TAG_NAME_MAX_LENGTH = 64
USER_ID_MAX_LENGTH = 256


class Tag(BaseModel):
    """Free-form label owned by one user."""

    tag_id: UUID
    owner_id: str
    name: str
    normalized_name: str
    created_at: datetime
    updated_at: datetime


class Task(BaseModel):
    """Core task entity."""

    # Identity
    task_id: UUID
    owner_id: str

    # Details
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None

    # Timestamps
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    # Optimistic concurrency token (empty until first persisted write)
    version_token: bytes = b""

    # Populated only when tag links were loaded
    tags: list[Tag] = Field(default_factory=list)

    @property
    def is_archived(self) -> bool:
        return self.status == TaskStatus.ARCHIVED


class CreateTaskModel(BaseModel):
    """Input for creating a task."""

    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    tags: list[str] = Field(default_factory=list)


class UpdateTaskModel(BaseModel):
    """
    Partial update for a task.

    ``None`` means "leave unchanged" for every field. For ``tags`` an empty
    list is meaningful: it removes every tag from the task.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    status: Optional[TaskStatus] = None
    tags: Optional[list[str]] = None
    if_match_version: Optional[bytes] = None


class TaskQuery(BaseModel):
    """Search criteria for the task query engine."""

    # Paging
    page_number: int = 1
    page_size: int = 20

    # Filters
    statuses: Optional[list[TaskStatus]] = None
    priorities: Optional[list[TaskPriority]] = None
    due_on_or_after: Optional[date] = None
    due_on_or_before: Optional[date] = None
    search: Optional[str] = None
    tags: Optional[list[str]] = None

    # Ordering
    sort_by: TaskSortBy = TaskSortBy.CREATED_AT
    sort_direction: SortDirection = SortDirection.DESC

    include_tags: bool = True


class PagedResult(BaseModel, Generic[T]):
    """One page of results plus the size of the whole filtered set."""

    items: list[T]
    total_count: int
    page_number: int
    page_size: int
