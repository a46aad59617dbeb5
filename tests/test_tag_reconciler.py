"""
Tag reconciliation tests.

Covers normalization, idempotency, per-owner isolation and recovery from a
uniqueness conflict raised by a concurrent insert.
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from taskmaster.db.repositories import TagRepository, fold_upper, normalize_tag_names
from taskmaster.db.tables import TagTable
from taskmaster.engine import ValidationFailure
from taskmaster.engine.tags import TagReconciler


async def _tag_count(session, owner_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(TagTable).where(TagTable.owner_id == owner_id)
    )
    return result.scalar_one()


def test_normalize_drops_blanks_and_keeps_first_casing():
    assert normalize_tag_names(["  work ", "", "   ", "Work", "HOME", None]) == {
        "WORK": "work",
        "HOME": "HOME",
    }


def test_normalize_handles_none():
    assert normalize_tag_names(None) == {}


def test_fold_upper_preserves_length():
    assert fold_upper("straße") == "STRAßE"
    assert fold_upper("ﬁle") == "ﬁLE"
    assert fold_upper("Ärger") == "ÄRGER"


@pytest.mark.asyncio
async def test_empty_batch_returns_nothing_without_io(session, monkeypatch):
    reconciler = TagReconciler(session)

    async def fail_lookup(*args, **kwargs):
        raise AssertionError("lookup should not run for an empty batch")

    monkeypatch.setattr(reconciler.tags, "find_by_normalized_names", fail_lookup)

    assert await reconciler.ensure([], "alice") == []
    assert await reconciler.ensure(["", "   "], "alice") == []
    assert await reconciler.ensure(None, "alice") == []


@pytest.mark.asyncio
async def test_near_duplicates_collapse_to_one_tag(session):
    reconciler = TagReconciler(session)

    tags = await reconciler.ensure(["work", "Work", " WORK "], "alice")

    assert len(tags) == 1
    assert tags[0].normalized_name == "WORK"
    assert tags[0].name == "work"
    assert await _tag_count(session, "alice") == 1


@pytest.mark.asyncio
async def test_ensure_is_idempotent(session):
    reconciler = TagReconciler(session)

    first = await reconciler.ensure(["work", "home", "Errands"], "alice")
    second = await reconciler.ensure(["Home", "errands", "WORK"], "alice")

    assert {t.normalized_name for t in first} == {"WORK", "HOME", "ERRANDS"}
    assert {t.id for t in first} == {t.id for t in second}
    assert await _tag_count(session, "alice") == 3


@pytest.mark.asyncio
async def test_existing_display_name_is_kept(session):
    reconciler = TagReconciler(session)

    await reconciler.ensure(["Work"], "alice")
    tags = await reconciler.ensure(["WORK"], "alice")

    assert [t.name for t in tags] == ["Work"]


@pytest.mark.asyncio
async def test_mixed_existing_and_new(session):
    reconciler = TagReconciler(session)

    await reconciler.ensure(["work"], "alice")
    tags = await reconciler.ensure(["work", "garden"], "alice")

    assert {t.normalized_name for t in tags} == {"WORK", "GARDEN"}
    assert await _tag_count(session, "alice") == 2


@pytest.mark.asyncio
async def test_tags_are_scoped_per_owner(session):
    reconciler = TagReconciler(session)

    alice_tags = await reconciler.ensure(["work"], "alice")
    bob_tags = await reconciler.ensure(["Work"], "bob")

    assert alice_tags[0].id != bob_tags[0].id
    assert bob_tags[0].owner_id == "bob"
    assert bob_tags[0].name == "Work"


@pytest.mark.asyncio
async def test_overlong_tag_name_rejected(session):
    reconciler = TagReconciler(session)

    with pytest.raises(ValidationFailure) as exc_info:
        await reconciler.ensure(["x" * 65], "alice")

    assert exc_info.value.field == "tags"
    assert await _tag_count(session, "alice") == 0


@pytest.mark.asyncio
async def test_normalized_name_never_outgrows_display_name(session):
    reconciler = TagReconciler(session)

    tags = await reconciler.ensure(["ß" * 64, "ﬁle"], "alice")

    assert sorted(len(t.normalized_name) for t in tags) == [3, 64]
    assert all(len(t.normalized_name) == len(t.name) for t in tags)


@pytest.mark.asyncio
async def test_sharp_s_is_not_merged_with_double_s(session):
    reconciler = TagReconciler(session)

    tags = await reconciler.ensure(["straße", "STRASSE", "Straße"], "alice")

    assert {t.normalized_name: t.name for t in tags} == {
        "STRAßE": "straße",
        "STRASSE": "STRASSE",
    }
    assert await _tag_count(session, "alice") == 2


@pytest.mark.asyncio
async def test_recovers_when_concurrent_insert_wins(session, monkeypatch):
    """A stale lookup leads to a unique violation; the retry resolves by lookup."""
    await TagReconciler(session).ensure(["work"], "alice")

    reconciler = TagReconciler(session, retries=1)
    real_lookup = reconciler.tags.find_by_normalized_names
    calls = {"count": 0}

    async def stale_then_real(owner_id, keys):
        calls["count"] += 1
        if calls["count"] == 1:
            return []
        return await real_lookup(owner_id, keys)

    monkeypatch.setattr(reconciler.tags, "find_by_normalized_names", stale_then_real)

    tags = await reconciler.ensure(["Work", "home"], "alice")

    assert calls["count"] == 2
    assert {t.normalized_name for t in tags} == {"WORK", "HOME"}
    assert await _tag_count(session, "alice") == 2


@pytest.mark.asyncio
async def test_conflict_propagates_when_retries_exhausted(session, monkeypatch):
    await TagReconciler(session).ensure(["work"], "alice")

    reconciler = TagReconciler(session, retries=0)

    async def always_stale(owner_id, keys):
        return []

    monkeypatch.setattr(reconciler.tags, "find_by_normalized_names", always_stale)

    with pytest.raises(IntegrityError):
        await reconciler.ensure(["work"], "alice")

    # Savepoint rolled back; the original tag is untouched
    assert await _tag_count(session, "alice") == 1


@pytest.mark.asyncio
async def test_tag_search_orders_by_name_and_matches_substring(session):
    await TagReconciler(session).ensure(["Homework", "work", "Garden", "Network"], "alice")
    await TagReconciler(session).ensure(["workshop"], "bob")

    repo = TagRepository(session)
    tags = await repo.search("alice", "WORK", limit=10)

    assert [t.name for t in tags] == ["Homework", "Network", "work"]


@pytest.mark.asyncio
async def test_tag_search_honours_limit(session):
    await TagReconciler(session).ensure(["a1", "a2", "a3"], "alice")

    tags = await TagRepository(session).search("alice", None, limit=2)

    assert [t.name for t in tags] == ["a1", "a2"]
