"""TaskMaster core engine - task queries and mutations."""

import logging
from datetime import datetime
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from taskmaster.auth.context import CurrentUser
from taskmaster.config import settings
from taskmaster.db.repositories import TagRepository, TaskRepository
from taskmaster.db.tables import TagTable, TaskTable, TaskTagTable
from taskmaster.db.tokens import VersionTokenIssuer, get_token_issuer
from taskmaster.engine.errors import (
    ConcurrencyConflict,
    TagNotFound,
    TaskNotFound,
    UnauthorizedError,
    ValidationFailure,
)
from taskmaster.engine.guard import ensure_version
from taskmaster.engine.tags import TagReconciler
from taskmaster.models import (
    CreateTaskModel,
    PagedResult,
    Tag,
    Task,
    TaskQuery,
    TaskStatus,
    UpdateTaskModel,
)
from taskmaster.models.task import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH
from taskmaster.utils.time import ensure_utc, next_after, utc_now

logger = logging.getLogger(__name__)


class TaskMasterEngine:
    """Core engine implementing task search, create, update and delete.

    Every operation takes the caller's identity explicitly; the owner id it
    carries scopes all reads and is stamped on every insert. The engine only
    flushes: the surrounding session decides when the transaction commits,
    and each mutation body runs inside a SAVEPOINT so a failure leaves no
    partial writes behind.
    """

    def __init__(
        self,
        session: AsyncSession,
        token_issuer: VersionTokenIssuer | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.tasks = TaskRepository(session)
        self.tags = TagRepository(session)
        self.reconciler = TagReconciler(session, clock=clock)
        self.token_issuer = token_issuer or get_token_issuer()
        self.clock = clock

    # =========================================================================
    # Queries
    # =========================================================================

    async def search_tasks(self, user: CurrentUser, criteria: TaskQuery) -> PagedResult[Task]:
        """Search the caller's tasks."""
        owner_id = self._require_owner(user)
        return await self.tasks.search(owner_id, criteria)

    async def get_task(
        self,
        user: CurrentUser,
        task_id: UUID,
        include_tags: bool = True,
    ) -> Task:
        """Get one of the caller's tasks by ID."""
        owner_id = self._require_owner(user)
        task = await self.tasks.get(owner_id, task_id, include_tags=include_tags)
        if not task:
            raise TaskNotFound(str(task_id))
        return task

    async def search_tags(
        self,
        user: CurrentUser,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[Tag]:
        """Typeahead over the caller's tags, ordered by name."""
        owner_id = self._require_owner(user)
        limit = settings.default_tag_search_limit if limit is None else limit
        limit = min(max(limit, 1), settings.max_tag_search_limit)
        return await self.tags.search(owner_id, search, limit)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def create_task(self, user: CurrentUser, model: CreateTaskModel) -> Task:
        """
        Create a task for the caller.

        The title is trimmed, a blank description is stored as absent and the
        task always starts in Todo. Supplied tags are reconciled and linked
        before the first flush.
        """
        owner_id = self._require_owner(user)

        title = (model.title or "").strip()
        _validate_title(title)
        description = model.description
        if description is not None and not description.strip():
            description = None
        _validate_description(description)

        now = ensure_utc(self.clock())

        async with self.session.begin_nested():
            tags = await self.reconciler.ensure(model.tags, owner_id) if model.tags else []
            row = TaskTable(
                id=uuid4(),
                owner_id=owner_id,
                title=title,
                description=description,
                status=TaskStatus.TODO,
                priority=model.priority,
                due_date=model.due_date,
                created_at=now,
                updated_at=now,
                completed_at=None,
                version_token=self._issue_token(None),
                tag_links=[TaskTagTable(tag=tag) for tag in tags],
            )
            self.tasks.add(row)
            await self.session.flush()

        logger.info(f"Task {row.id} created by owner {owner_id} with {len(tags)} tag(s)")
        return self.tasks.row_to_model(row)

    async def update_task(
        self,
        user: CurrentUser,
        task_id: UUID,
        changes: UpdateTaskModel,
    ) -> Task:
        """
        Apply a partial update to one of the caller's tasks.

        Fields left as ``None`` are untouched. ``tags=None`` leaves tag links
        alone while ``tags=[]`` removes them all. The version guard runs
        before anything changes.
        """
        owner_id = self._require_owner(user)

        row = await self.tasks.get_row(owner_id, task_id, include_tags=True)
        if not row:
            raise TaskNotFound(str(task_id))

        self._guard(task_id, changes.if_match_version, row.version_token)

        if changes.title is not None:
            _validate_title(changes.title)
        _validate_description(changes.description)

        try:
            async with self.session.begin_nested():
                desired = None
                if changes.tags is not None:
                    desired = await self.reconciler.ensure(changes.tags, owner_id)

                now = next_after(row.updated_at, self.clock())

                if changes.title is not None:
                    row.title = changes.title
                if changes.description is not None:
                    row.description = changes.description
                if changes.priority is not None:
                    row.priority = changes.priority
                if changes.due_date is not None:
                    row.due_date = changes.due_date
                if changes.status is not None:
                    apply_status(row, changes.status, now)
                if desired is not None:
                    sync_tags(row, desired)

                row.updated_at = now
                row.version_token = self._issue_token(row.version_token)
                await self.session.flush()
        except StaleDataError as e:
            # Another writer committed between our read and our write
            logger.warning(f"Task {task_id} changed underneath update by owner {owner_id}")
            raise ConcurrencyConflict(str(task_id)) from e

        logger.info(f"Task {task_id} updated by owner {owner_id}")
        return self.tasks.row_to_model(row)

    async def delete_task(
        self,
        user: CurrentUser,
        task_id: UUID,
        if_match_version: bytes | None = None,
    ) -> None:
        """Delete one of the caller's tasks and its tag links; tags survive."""
        owner_id = self._require_owner(user)

        row = await self.tasks.get_row(owner_id, task_id)
        if not row:
            raise TaskNotFound(str(task_id))

        self._guard(task_id, if_match_version, row.version_token)

        try:
            async with self.session.begin_nested():
                await self.tasks.remove(row)
                await self.session.flush()
        except StaleDataError as e:
            logger.warning(f"Task {task_id} changed underneath delete by owner {owner_id}")
            raise ConcurrencyConflict(str(task_id)) from e

        logger.info(f"Task {task_id} deleted by owner {owner_id}")

    async def delete_tag(self, user: CurrentUser, tag_id: UUID) -> None:
        """Delete one of the caller's tags; tasks keep everything but the link."""
        owner_id = self._require_owner(user)

        async with self.session.begin_nested():
            deleted = await self.tags.delete(owner_id, tag_id)
        if not deleted:
            raise TagNotFound(str(tag_id))

        logger.info(f"Tag {tag_id} deleted by owner {owner_id}")

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _require_owner(user: CurrentUser | None) -> str:
        if user is None or not user.is_authenticated or not (user.owner_id or "").strip():
            raise UnauthorizedError()
        return user.owner_id

    @staticmethod
    def _guard(task_id: UUID, supplied: bytes | None, current: bytes | None) -> None:
        try:
            ensure_version(str(task_id), supplied, current)
        except ConcurrencyConflict:
            logger.warning(f"Version token mismatch for task {task_id}")
            raise

    def _issue_token(self, previous: bytes | None) -> bytes:
        token = self.token_issuer.issue_new_token()
        while token == previous:
            token = self.token_issuer.issue_new_token()
        return token


def apply_status(row: TaskTable, status: TaskStatus, now: datetime) -> None:
    """Set status; only Done carries a completion timestamp."""
    row.status = status
    row.completed_at = now if status == TaskStatus.DONE else None


def sync_tags(row: TaskTable, desired: list[TagTable]) -> None:
    """Make the task's links match ``desired`` without touching shared ones."""
    desired_ids = {tag.id for tag in desired}

    for link in [link for link in row.tag_links if link.tag_id not in desired_ids]:
        row.tag_links.remove(link)

    current_ids = {link.tag_id for link in row.tag_links}
    for tag in desired:
        if tag.id not in current_ids:
            row.tag_links.append(TaskTagTable(tag=tag))
            current_ids.add(tag.id)


def _validate_title(title: str) -> None:
    if title is None or not title.strip():
        raise ValidationFailure("title", "Title cannot be blank or whitespace.")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationFailure(
            "title", f"Title must be at most {TITLE_MAX_LENGTH} characters."
        )


def _validate_description(description: str | None) -> None:
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationFailure(
            "description",
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters.",
        )
