"""Tag reconciliation - resolve desired tag names to stored tags."""

import logging
from datetime import datetime
from typing import Callable, Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.config import settings
from taskmaster.db.repositories import TagRepository, normalize_tag_names
from taskmaster.db.tables import TagTable
from taskmaster.engine.errors import ValidationFailure
from taskmaster.models.task import TAG_NAME_MAX_LENGTH
from taskmaster.utils.time import utc_now

logger = logging.getLogger(__name__)


class TagReconciler:
    """
    Ensures one stored tag per distinct normalized name for an owner.

    The reconciler is an optimization over the (owner, normalized_name)
    unique constraint, which stays the source of truth: when a concurrent
    request inserts the same tag first, our insert is rolled back to a
    savepoint and the batch is resolved again by lookup.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
        retries: int | None = None,
    ):
        self.session = session
        self.tags = TagRepository(session)
        self.clock = clock
        self.retries = settings.tag_insert_retries if retries is None else retries

    async def ensure(self, names: Iterable[str] | None, owner_id: str) -> list[TagTable]:
        """Return existing or newly created tags for ``names``, one per key."""
        wanted = normalize_tag_names(names)
        if not wanted:
            return []

        for display in wanted.values():
            if len(display) > TAG_NAME_MAX_LENGTH:
                raise ValidationFailure(
                    "tags",
                    f"Tag names must be at most {TAG_NAME_MAX_LENGTH} characters.",
                )

        attempt = 0
        while True:
            existing = await self.tags.find_by_normalized_names(owner_id, wanted)
            found = {row.normalized_name for row in existing}
            missing = {key: name for key, name in wanted.items() if key not in found}
            if not missing:
                return existing

            try:
                async with self.session.begin_nested():
                    created = await self.tags.add_many(owner_id, missing, self.clock())
            except IntegrityError:
                if attempt >= self.retries:
                    raise
                attempt += 1
                logger.info(
                    f"Tag insert raced for owner {owner_id} "
                    f"({', '.join(sorted(missing))}); reconciling by lookup"
                )
                continue

            if created:
                logger.debug(f"Created {len(created)} tag(s) for owner {owner_id}")
            return existing + created
