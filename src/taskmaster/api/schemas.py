"""API request/response schemas."""

import base64
import binascii
from datetime import date, datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer, field_validator

from taskmaster.db.repositories import normalize_tag_name
from taskmaster.models import SortDirection, Tag, Task, TaskPriority, TaskSortBy, TaskStatus
from taskmaster.models.task import (
    DESCRIPTION_MAX_LENGTH,
    TAG_NAME_MAX_LENGTH,
    TITLE_MAX_LENGTH,
)

# Enums travel as their display labels ("InProgress", "High") on the wire
StatusField = Annotated[
    TaskStatus,
    BeforeValidator(TaskStatus.parse),
    PlainSerializer(lambda v: v.label, return_type=str),
]
PriorityField = Annotated[
    TaskPriority,
    BeforeValidator(TaskPriority.parse),
    PlainSerializer(lambda v: v.label, return_type=str),
]


# ============================================================================
# ETag helpers
# ============================================================================


def encode_etag(version_token: bytes | None) -> Optional[str]:
    """Base64 form of a version token; None until the task has one."""
    if not version_token:
        return None
    return base64.b64encode(version_token).decode("ascii")


def decode_etag(etag: str | None) -> Optional[bytes]:
    """Decode a client ETag, accepting quoted and weak (W/"...") forms."""
    if etag is None:
        return None
    value = etag.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"').strip()
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None


def parse_sort_by(value: str | None) -> TaskSortBy:
    """Accept created_at, createdAt, CreatedAt and friends."""
    if value is None or not value.strip():
        return TaskSortBy.CREATED_AT
    folded = value.strip().replace("_", "").lower()
    for member in TaskSortBy:
        if member.value.replace("_", "") == folded:
            return member
    raise ValueError(f"Unsupported sort field: {value}")


def parse_sort_direction(value: str | None) -> SortDirection:
    if value is None or not value.strip():
        return SortDirection.DESC
    return SortDirection(value.strip().lower())


def _check_tag_names(tags: list[str]) -> list[str]:
    keys = []
    for name in tags:
        if name is None or not name.strip():
            raise ValueError("Tag names cannot be blank.")
        if len(name.strip()) > TAG_NAME_MAX_LENGTH:
            raise ValueError(f"Tag names must be at most {TAG_NAME_MAX_LENGTH} characters.")
        keys.append(normalize_tag_name(name))
    if len(set(keys)) != len(keys):
        raise ValueError("Duplicate tags are not allowed.")
    return tags


# ============================================================================
# Shared schemas
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


class TagResponse(BaseModel):
    """Tag as seen by clients."""

    id: UUID
    name: str

    @classmethod
    def from_model(cls, tag: Tag) -> "TagResponse":
        return cls(id=tag.tag_id, name=tag.name)


# ============================================================================
# Task schemas
# ============================================================================


class TaskResponse(BaseModel):
    """Task response."""

    id: UUID
    title: str
    description: Optional[str] = None
    status: StatusField
    priority: PriorityField
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    is_archived: bool
    etag: Optional[str] = Field(None, description="Base64 version token for If-Match")
    tags: list[TagResponse] = Field(default_factory=list)

    @classmethod
    def from_model(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.task_id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
            completed_at=task.completed_at,
            is_archived=task.is_archived,
            etag=encode_etag(task.version_token),
            tags=[TagResponse.from_model(t) for t in task.tags],
        )


class PagedTaskResponse(BaseModel):
    """One page of tasks."""

    items: list[TaskResponse]
    total_count: int
    page_number: int
    page_size: int


class CreateTaskRequest(BaseModel):
    """Create task request."""

    title: str = Field(..., max_length=TITLE_MAX_LENGTH, description="Task title")
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    priority: PriorityField = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    tags: list[str] = Field(default_factory=list, description="Tag names")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Title cannot be blank or whitespace.")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        return _check_tag_names(v)


class UpdateTaskRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    title: Optional[str] = Field(None, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    priority: Optional[PriorityField] = None
    due_date: Optional[date] = None
    status: Optional[StatusField] = None
    tags: Optional[list[str]] = Field(
        None, description="Replaces the tag set when present; [] clears it"
    )
    etag: Optional[str] = Field(None, description="Version token when If-Match is not used")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Title cannot be blank or whitespace.")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else _check_tag_names(v)

    @field_validator("etag")
    @classmethod
    def validate_etag(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.strip() and decode_etag(v) is None:
            raise ValueError("ETag must be a valid base64 string.")
        return v
