"""TaskMaster database layer."""

from taskmaster.db.base import Base, init_db
from taskmaster.db.tables import TagTable, TaskTable, TaskTagTable

__all__ = [
    "Base",
    "init_db",
    "TagTable",
    "TaskTable",
    "TaskTagTable",
]
