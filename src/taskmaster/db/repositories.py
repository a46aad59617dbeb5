"""Database repositories for TaskMaster entities."""

from datetime import datetime
from typing import Iterable
from uuid import UUID, uuid4

from sqlalchemy import ColumnElement, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskmaster.config import settings
from taskmaster.db.tables import TagTable, TaskTable, TaskTagTable
from taskmaster.models import (
    PagedResult,
    SortDirection,
    Tag,
    Task,
    TaskQuery,
    TaskSortBy,
)


def fold_upper(text: str) -> str:
    """
    Upper-case one character at a time, keeping characters whose upper
    form is longer than one character (the German sharp s) unchanged.

    The result always has the same length as the input.
    """
    return "".join(c if len(c.upper()) != 1 else c.upper() for c in text)


def normalize_tag_name(name: str) -> str:
    """Normalization key for tag names: trimmed and upper-cased."""
    return fold_upper(name.strip())


def normalize_tag_names(names: Iterable[str] | None) -> dict[str, str]:
    """
    Map each distinct normalized key to its representative trimmed name.

    Blank names are dropped and the first occurrence of a key wins, so the
    result is immune to duplicates and near-duplicates within one batch.
    """
    representatives: dict[str, str] = {}
    for name in names or ():
        if name is None or not name.strip():
            continue
        trimmed = name.strip()
        representatives.setdefault(fold_upper(trimmed), trimmed)
    return representatives


def clamp_page(page_number: int | None, page_size: int | None) -> tuple[int, int]:
    """Clamp paging input: page >= 1, size within [1, max_page_size]."""
    page = max(page_number or 1, 1)
    size = settings.default_page_size if page_size is None else page_size
    size = min(max(size, 1), settings.max_page_size)
    return page, size


class TaskRepository:
    """Repository for task operations, including the search engine."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_row(
        self,
        owner_id: str,
        task_id: UUID,
        include_tags: bool = False,
    ) -> TaskTable | None:
        """Load a task row scoped to its owner, optionally with tag links."""
        query = select(TaskTable).where(
            TaskTable.owner_id == owner_id,
            TaskTable.id == task_id,
        )
        if include_tags:
            query = query.options(
                selectinload(TaskTable.tag_links).selectinload(TaskTagTable.tag)
            )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get(self, owner_id: str, task_id: UUID, include_tags: bool = True) -> Task | None:
        """Get a task by ID."""
        row = await self.get_row(owner_id, task_id, include_tags=include_tags)
        return self.row_to_model(row, include_tags=include_tags) if row else None

    def add(self, row: TaskTable) -> None:
        self.session.add(row)

    async def remove(self, row: TaskTable) -> None:
        await self.session.delete(row)

    async def search(self, owner_id: str, criteria: TaskQuery) -> PagedResult[Task]:
        """
        Run a filtered, sorted, paged search over one owner's tasks.

        The owner predicate is always applied first and no criterion can widen
        it. The total count covers the filtered set before paging, so a page
        past the end returns no items but still reports the real total.
        """
        page, size = clamp_page(criteria.page_number, criteria.page_size)

        query = select(TaskTable).where(TaskTable.owner_id == owner_id)
        for predicate in self._filters(owner_id, criteria):
            query = query.where(predicate)

        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        offset = (page - 1) * size
        if offset >= total:
            return PagedResult[Task](
                items=[], total_count=total, page_number=page, page_size=size
            )

        query = query.order_by(*self._ordering(criteria.sort_by, criteria.sort_direction))
        query = query.offset(offset).limit(size)
        if criteria.include_tags:
            query = query.options(
                selectinload(TaskTable.tag_links).selectinload(TaskTagTable.tag)
            )

        result = await self.session.execute(query)
        rows = list(result.scalars().all())

        return PagedResult[Task](
            items=[self.row_to_model(r, include_tags=criteria.include_tags) for r in rows],
            total_count=total,
            page_number=page,
            page_size=size,
        )

    def _filters(self, owner_id: str, criteria: TaskQuery) -> list[ColumnElement[bool]]:
        predicates: list[ColumnElement[bool]] = []

        if criteria.statuses:
            predicates.append(TaskTable.status.in_(sorted(set(criteria.statuses))))

        if criteria.priorities:
            predicates.append(TaskTable.priority.in_(sorted(set(criteria.priorities))))

        if criteria.due_on_or_after is not None:
            predicates.append(TaskTable.due_date >= criteria.due_on_or_after)

        if criteria.due_on_or_before is not None:
            predicates.append(TaskTable.due_date <= criteria.due_on_or_before)

        if criteria.search and criteria.search.strip():
            term = criteria.search.strip().lower()
            predicates.append(
                or_(
                    func.lower(TaskTable.title).contains(term, autoescape=True),
                    func.lower(TaskTable.description).contains(term, autoescape=True),
                )
            )

        keys = list(normalize_tag_names(criteria.tags))
        if keys:
            # Task must carry every requested tag (possibly more)
            matched = (
                select(func.count())
                .select_from(TaskTagTable)
                .join(TagTable, TagTable.id == TaskTagTable.tag_id)
                .where(
                    TaskTagTable.task_id == TaskTable.id,
                    TagTable.owner_id == owner_id,
                    TagTable.normalized_name.in_(keys),
                )
                .correlate(TaskTable)
                .scalar_subquery()
            )
            predicates.append(matched == len(keys))

        return predicates

    @staticmethod
    def _ordering(sort_by: TaskSortBy, direction: SortDirection) -> list:
        descending = direction == SortDirection.DESC

        if sort_by == TaskSortBy.CREATED_AT:
            primary = [TaskTable.created_at.desc() if descending else TaskTable.created_at.asc()]
        elif sort_by == TaskSortBy.DUE_DATE:
            # Undated tasks go last in both directions
            column = TaskTable.due_date.desc() if descending else TaskTable.due_date.asc()
            primary = [column.nulls_last(), TaskTable.created_at.desc()]
        else:
            column = {
                TaskSortBy.PRIORITY: TaskTable.priority,
                TaskSortBy.TITLE: TaskTable.title,
                TaskSortBy.STATUS: TaskTable.status,
            }[sort_by]
            primary = [column.desc() if descending else column.asc(), TaskTable.created_at.desc()]

        # Final key keeps pages stable even when creation times collide
        return primary + [TaskTable.id.asc()]

    @staticmethod
    def row_to_model(row: TaskTable, include_tags: bool = True) -> Task:
        """Convert database row to model."""
        tags: list[Tag] = []
        if include_tags:
            tags = [TagRepository.row_to_model(link.tag) for link in row.tag_links]

        return Task(
            task_id=row.id,
            owner_id=row.owner_id,
            title=row.title,
            description=row.description,
            status=row.status,
            priority=row.priority,
            due_date=row.due_date,
            created_at=row.created_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
            version_token=row.version_token or b"",
            tags=tags,
        )


class TagRepository:
    """Repository for tag operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_normalized_names(
        self,
        owner_id: str,
        normalized_names: Iterable[str],
    ) -> list[TagTable]:
        """Fetch an owner's tags whose normalized name is in the given set."""
        keys = list(normalized_names)
        if not keys:
            return []
        result = await self.session.execute(
            select(TagTable).where(
                TagTable.owner_id == owner_id,
                TagTable.normalized_name.in_(keys),
            )
        )
        return list(result.scalars().all())

    async def add_many(
        self,
        owner_id: str,
        names: dict[str, str],
        now: datetime,
    ) -> list[TagTable]:
        """Insert tags for ``{normalized: display}`` pairs and flush."""
        rows = [
            TagTable(
                id=uuid4(),
                owner_id=owner_id,
                name=display,
                normalized_name=normalized,
                created_at=now,
                updated_at=now,
            )
            for normalized, display in names.items()
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return rows

    async def search(self, owner_id: str, search: str | None, limit: int) -> list[Tag]:
        """Typeahead: tags whose normalized name contains the search text."""
        query = select(TagTable).where(TagTable.owner_id == owner_id)
        if search and search.strip():
            query = query.where(
                TagTable.normalized_name.contains(normalize_tag_name(search), autoescape=True)
            )
        query = query.order_by(TagTable.name.asc(), TagTable.id.asc()).limit(limit)

        result = await self.session.execute(query)
        return [self.row_to_model(r) for r in result.scalars().all()]

    async def delete(self, owner_id: str, tag_id: UUID) -> bool:
        """Delete a tag; its task links cascade away in the database."""
        result = await self.session.execute(
            delete(TagTable).where(TagTable.owner_id == owner_id, TagTable.id == tag_id)
        )
        return result.rowcount > 0

    @staticmethod
    def row_to_model(row: TagTable) -> Tag:
        """Convert database row to model."""
        return Tag(
            tag_id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            normalized_name=row.normalized_name,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
