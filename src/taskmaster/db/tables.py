"""SQLAlchemy table definitions."""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    LargeBinary,
    SmallInteger,
    String,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskmaster.db.base import Base
from taskmaster.models.enums import TaskPriority, TaskStatus
from taskmaster.models.task import (
    DESCRIPTION_MAX_LENGTH,
    TAG_NAME_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    USER_ID_MAX_LENGTH,
)
from taskmaster.utils.time import ensure_utc


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always comes back as UTC, even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return ensure_utc(value)

    def process_result_value(self, value, dialect):
        return ensure_utc(value)


class OrdinalEnum(TypeDecorator):
    """Store an IntEnum by its ordinal so SQL comparisons follow rank order."""

    impl = SmallInteger
    cache_ok = True

    def __init__(self, enum_cls, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_cls = enum_cls

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(self.enum_cls(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_cls(value)


class TaskTable(Base):
    """Tasks table - personal to-do items."""

    __tablename__ = "tasks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)

    # Ownership (immutable)
    owner_id: Mapped[str] = mapped_column(String(USER_ID_MAX_LENGTH), nullable=False)

    # Details
    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)
    description: Mapped[str | None] = mapped_column(String(DESCRIPTION_MAX_LENGTH), nullable=True)
    status: Mapped[TaskStatus] = mapped_column(
        OrdinalEnum(TaskStatus), nullable=False, default=TaskStatus.TODO
    )
    priority: Mapped[TaskPriority] = mapped_column(
        OrdinalEnum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Optimistic concurrency token; the ORM adds it to UPDATE/DELETE WHERE clauses
    version_token: Mapped[bytes] = mapped_column(LargeBinary(64), nullable=False)

    tag_links: Mapped[list["TaskTagTable"]] = relationship(
        "TaskTagTable",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    __mapper_args__ = {
        "version_id_col": version_token,
        "version_id_generator": False,
    }

    __table_args__ = (
        Index("idx_tasks_owner_status", "owner_id", "status"),
        Index("idx_tasks_owner_due", "owner_id", "due_date"),
        Index("idx_tasks_owner_created", "owner_id", "created_at"),
        Index("idx_tasks_owner_priority", "owner_id", "priority"),
    )


class TagTable(Base):
    """Tags table - labels, unique per owner by normalized name."""

    __tablename__ = "tags"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(USER_ID_MAX_LENGTH), nullable=False)
    name: Mapped[str] = mapped_column(String(TAG_NAME_MAX_LENGTH), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(TAG_NAME_MAX_LENGTH), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        # Source of truth for tag uniqueness under concurrent reconciliation
        UniqueConstraint("owner_id", "normalized_name", name="uq_tags_owner_normalized"),
    )


class TaskTagTable(Base):
    """Task/tag join table. Links cascade away with either side."""

    __tablename__ = "task_tags"

    task_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    )

    task: Mapped[TaskTable] = relationship("TaskTable", back_populates="tag_links")
    tag: Mapped[TagTable] = relationship("TagTable", lazy="raise")

    __table_args__ = (
        Index("idx_task_tags_task", "task_id"),
        Index("idx_task_tags_tag", "tag_id"),
    )
