"""
Task query engine tests: tenant isolation, filters, sorting and paging.
"""

from datetime import date

import pytest

from taskmaster.auth.context import CurrentUser
from taskmaster.engine import UnauthorizedError
from taskmaster.models import (
    CreateTaskModel,
    SortDirection,
    TaskPriority,
    TaskQuery,
    TaskSortBy,
    TaskStatus,
    UpdateTaskModel,
)

ALICE = CurrentUser.for_owner("alice")
BOB = CurrentUser.for_owner("bob")


async def _create(task_engine, user=ALICE, **fields):
    fields.setdefault("title", "Task")
    return await task_engine.create_task(user, CreateTaskModel(**fields))


async def _set_status(task_engine, task, status, user=ALICE):
    return await task_engine.update_task(
        user,
        task.task_id,
        UpdateTaskModel(status=status, if_match_version=task.version_token),
    )


async def _titles(task_engine, user=ALICE, **criteria):
    page = await task_engine.search_tasks(user, TaskQuery(**criteria))
    return [t.title for t in page.items]


@pytest.mark.asyncio
async def test_search_only_returns_callers_tasks(task_engine):
    await _create(task_engine, title="Alice 1")
    await _create(task_engine, title="Alice 2")
    await _create(task_engine, user=BOB, title="Bob 1")

    page = await task_engine.search_tasks(ALICE, TaskQuery(search="1"))

    assert [t.title for t in page.items] == ["Alice 1"]
    assert page.total_count == 1
    assert all(t.owner_id == "alice" for t in page.items)


@pytest.mark.asyncio
async def test_search_requires_authenticated_user(task_engine):
    with pytest.raises(UnauthorizedError):
        await task_engine.search_tasks(CurrentUser.anonymous(), TaskQuery())


@pytest.mark.asyncio
async def test_default_sort_is_newest_first(task_engine):
    for title in ["First", "Second", "Third"]:
        await _create(task_engine, title=title)

    assert await _titles(task_engine) == ["Third", "Second", "First"]
    assert await _titles(task_engine, sort_direction=SortDirection.ASC) == [
        "First",
        "Second",
        "Third",
    ]


@pytest.mark.asyncio
async def test_status_filter_is_a_set(task_engine):
    todo = await _create(task_engine, title="Todo")
    started = await _create(task_engine, title="Started")
    done = await _create(task_engine, title="Done")
    await _set_status(task_engine, started, TaskStatus.IN_PROGRESS)
    await _set_status(task_engine, done, TaskStatus.DONE)

    titles = await _titles(
        task_engine,
        statuses=[TaskStatus.IN_PROGRESS, TaskStatus.DONE, TaskStatus.DONE],
        sort_direction=SortDirection.ASC,
    )

    assert titles == ["Started", "Done"]
    assert todo.status == TaskStatus.TODO


@pytest.mark.asyncio
async def test_priority_filter(task_engine):
    await _create(task_engine, title="Low", priority=TaskPriority.LOW)
    await _create(task_engine, title="High", priority=TaskPriority.HIGH)

    assert await _titles(task_engine, priorities=[TaskPriority.HIGH]) == ["High"]


@pytest.mark.asyncio
async def test_due_date_bounds_are_inclusive(task_engine):
    await _create(task_engine, title="Before", due_date=date(2024, 3, 9))
    await _create(task_engine, title="Start", due_date=date(2024, 3, 10))
    await _create(task_engine, title="End", due_date=date(2024, 3, 20))
    await _create(task_engine, title="After", due_date=date(2024, 3, 21))
    await _create(task_engine, title="Undated")

    titles = await _titles(
        task_engine,
        due_on_or_after=date(2024, 3, 10),
        due_on_or_before=date(2024, 3, 20),
        sort_by=TaskSortBy.DUE_DATE,
        sort_direction=SortDirection.ASC,
    )

    assert titles == ["Start", "End"]


@pytest.mark.asyncio
async def test_text_search_is_case_insensitive_over_title_and_description(task_engine):
    await _create(task_engine, title="Buy MILK")
    await _create(task_engine, title="Groceries", description="eggs and milk")
    await _create(task_engine, title="Laundry")

    titles = await _titles(task_engine, search="Milk", sort_direction=SortDirection.ASC)

    assert titles == ["Buy MILK", "Groceries"]


@pytest.mark.asyncio
async def test_text_search_treats_wildcards_literally(task_engine):
    await _create(task_engine, title="100% done")
    await _create(task_engine, title="1000 things")

    assert await _titles(task_engine, search="0%") == ["100% done"]


@pytest.mark.asyncio
async def test_text_search_folds_non_ascii_case(task_engine):
    await _create(task_engine, title="Ärger im Büro")
    await _create(task_engine, title="Notes", description="ÉTÉ PLANS")
    await _create(task_engine, title="Other")

    assert await _titles(task_engine, search="ärger") == ["Ärger im Büro"]
    assert await _titles(task_engine, search="BÜRO") == ["Ärger im Büro"]
    assert await _titles(task_engine, search="été") == ["Notes"]


@pytest.mark.asyncio
async def test_tag_filter_requires_every_tag(task_engine):
    await _create(task_engine, title="Both", tags=["work", "urgent"])
    await _create(task_engine, title="Work only", tags=["work"])
    await _create(task_engine, title="All three", tags=["Work", "Urgent", "home"])
    await _create(task_engine, title="Untagged")

    titles = await _titles(
        task_engine,
        tags=["URGENT", " work "],
        sort_direction=SortDirection.ASC,
    )

    assert titles == ["Both", "All three"]


@pytest.mark.asyncio
async def test_tag_filter_ignores_other_owners_tags(task_engine):
    await _create(task_engine, user=BOB, title="Bob work", tags=["work"])

    page = await task_engine.search_tasks(ALICE, TaskQuery(tags=["work"]))

    assert page.items == []
    assert page.total_count == 0


@pytest.mark.asyncio
async def test_priority_sort_uses_rank_with_newest_tie_break(task_engine):
    await _create(task_engine, title="Medium old", priority=TaskPriority.MEDIUM)
    await _create(task_engine, title="High", priority=TaskPriority.HIGH)
    await _create(task_engine, title="Low", priority=TaskPriority.LOW)
    await _create(task_engine, title="Medium new", priority=TaskPriority.MEDIUM)

    descending = await _titles(task_engine, sort_by=TaskSortBy.PRIORITY)
    ascending = await _titles(
        task_engine, sort_by=TaskSortBy.PRIORITY, sort_direction=SortDirection.ASC
    )

    assert descending == ["High", "Medium new", "Medium old", "Low"]
    assert ascending == ["Low", "Medium new", "Medium old", "High"]


@pytest.mark.asyncio
async def test_status_sort_uses_rank(task_engine):
    archived = await _create(task_engine, title="Archived")
    done = await _create(task_engine, title="Done")
    await _create(task_engine, title="Todo")
    await _set_status(task_engine, archived, TaskStatus.ARCHIVED)
    await _set_status(task_engine, done, TaskStatus.DONE)

    titles = await _titles(
        task_engine, sort_by=TaskSortBy.STATUS, sort_direction=SortDirection.ASC
    )

    assert titles == ["Todo", "Done", "Archived"]


@pytest.mark.asyncio
async def test_title_sort(task_engine):
    for title in ["Banana", "Apple", "Cherry"]:
        await _create(task_engine, title=title)

    assert await _titles(
        task_engine, sort_by=TaskSortBy.TITLE, sort_direction=SortDirection.ASC
    ) == ["Apple", "Banana", "Cherry"]


@pytest.mark.asyncio
async def test_due_date_sort_puts_undated_last(task_engine):
    await _create(task_engine, title="Undated")
    await _create(task_engine, title="Later", due_date=date(2024, 6, 1))
    await _create(task_engine, title="Sooner", due_date=date(2024, 5, 1))

    ascending = await _titles(
        task_engine, sort_by=TaskSortBy.DUE_DATE, sort_direction=SortDirection.ASC
    )
    descending = await _titles(task_engine, sort_by=TaskSortBy.DUE_DATE)

    assert ascending == ["Sooner", "Later", "Undated"]
    assert descending == ["Later", "Sooner", "Undated"]


@pytest.mark.asyncio
async def test_paging_reports_total_before_paging(task_engine):
    for i in range(5):
        await _create(task_engine, title=f"Task {i}")

    page = await task_engine.search_tasks(
        ALICE,
        TaskQuery(page_number=2, page_size=2, sort_direction=SortDirection.ASC),
    )

    assert [t.title for t in page.items] == ["Task 2", "Task 3"]
    assert page.total_count == 5
    assert page.page_number == 2
    assert page.page_size == 2


@pytest.mark.asyncio
async def test_page_past_the_end_is_empty_with_real_total(task_engine):
    for i in range(3):
        await _create(task_engine, title=f"Task {i}")

    page = await task_engine.search_tasks(ALICE, TaskQuery(page_number=10, page_size=2))

    assert page.items == []
    assert page.total_count == 3


@pytest.mark.asyncio
async def test_huge_page_number_is_empty_with_real_total(task_engine):
    await _create(task_engine, title="Only")

    page = await task_engine.search_tasks(ALICE, TaskQuery(page_number=10**18, page_size=100))

    assert page.items == []
    assert page.total_count == 1
    assert page.page_number == 10**18

    empty = await task_engine.search_tasks(BOB, TaskQuery(page_number=10**18))
    assert empty.items == []
    assert empty.total_count == 0


@pytest.mark.asyncio
async def test_paging_input_is_clamped(task_engine):
    await _create(task_engine, title="Only")

    page = await task_engine.search_tasks(ALICE, TaskQuery(page_number=0, page_size=1000))

    assert page.page_number == 1
    assert page.page_size == 100
    assert [t.title for t in page.items] == ["Only"]

    page = await task_engine.search_tasks(ALICE, TaskQuery(page_size=0))
    assert page.page_size == 1


@pytest.mark.asyncio
async def test_include_tags_flag(task_engine):
    await _create(task_engine, title="Tagged", tags=["work", "home"])

    with_tags = await task_engine.search_tasks(ALICE, TaskQuery())
    without_tags = await task_engine.search_tasks(ALICE, TaskQuery(include_tags=False))

    assert {t.normalized_name for t in with_tags.items[0].tags} == {"WORK", "HOME"}
    assert without_tags.items[0].tags == []
