"""Initial TaskMaster schema."""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create tasks, tags and the task/tag join table."""
    op.create_table(
        "tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.String(length=256), nullable=False),
        sa.Column("title", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=2000), nullable=True),
        # Ordinal ranks: Todo=0 InProgress=1 Done=2 Archived=3
        sa.Column("status", sa.SmallInteger(), nullable=False, server_default="0"),
        # Ordinal ranks: Low=0 Medium=1 High=2
        sa.Column("priority", sa.SmallInteger(), nullable=False, server_default="1"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_token", sa.LargeBinary(length=64), nullable=False),
        sa.CheckConstraint("status BETWEEN 0 AND 3", name="ck_tasks_status"),
        sa.CheckConstraint("priority BETWEEN 0 AND 2", name="ck_tasks_priority"),
    )
    op.create_index("idx_tasks_owner_status", "tasks", ["owner_id", "status"])
    op.create_index("idx_tasks_owner_due", "tasks", ["owner_id", "due_date"])
    op.create_index("idx_tasks_owner_created", "tasks", ["owner_id", "created_at"])
    op.create_index("idx_tasks_owner_priority", "tasks", ["owner_id", "priority"])

    op.create_table(
        "tags",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.String(length=256), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("normalized_name", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("owner_id", "normalized_name", name="uq_tags_owner_normalized"),
    )

    op.create_table(
        "task_tags",
        sa.Column(
            "task_id",
            sa.Uuid(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            sa.Uuid(),
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_index("idx_task_tags_task", "task_tags", ["task_id"])
    op.create_index("idx_task_tags_tag", "task_tags", ["tag_id"])


def downgrade() -> None:
    """Drop TaskMaster tables."""
    op.drop_index("idx_task_tags_tag", table_name="task_tags")
    op.drop_index("idx_task_tags_task", table_name="task_tags")
    op.drop_table("task_tags")

    op.drop_table("tags")

    op.drop_index("idx_tasks_owner_priority", table_name="tasks")
    op.drop_index("idx_tasks_owner_created", table_name="tasks")
    op.drop_index("idx_tasks_owner_due", table_name="tasks")
    op.drop_index("idx_tasks_owner_status", table_name="tasks")
    op.drop_table("tasks")
