"""TaskMaster enumerations."""

from enum import Enum, IntEnum


class TaskStatus(IntEnum):
    """Task lifecycle status.

    Values are ordinal ranks; they are what gets stored, compared and sorted.
    """

    TODO = 0
    IN_PROGRESS = 1
    DONE = 2
    ARCHIVED = 3

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @classmethod
    def parse(cls, value: "str | int | TaskStatus") -> "TaskStatus":
        """Accept an ordinal, a member name or a display label."""
        return _parse_ordinal(cls, value, _STATUS_LABELS)


class TaskPriority(IntEnum):
    """Task priority, ranked Low < Medium < High."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2

    @property
    def label(self) -> str:
        return _PRIORITY_LABELS[self]

    @classmethod
    def parse(cls, value: "str | int | TaskPriority") -> "TaskPriority":
        """Accept an ordinal, a member name or a display label."""
        return _parse_ordinal(cls, value, _PRIORITY_LABELS)


class TaskSortBy(str, Enum):
    """Sortable task fields."""

    CREATED_AT = "created_at"
    DUE_DATE = "due_date"
    PRIORITY = "priority"
    TITLE = "title"
    STATUS = "status"


class SortDirection(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


_STATUS_LABELS = {
    TaskStatus.TODO: "Todo",
    TaskStatus.IN_PROGRESS: "InProgress",
    TaskStatus.DONE: "Done",
    TaskStatus.ARCHIVED: "Archived",
}

_PRIORITY_LABELS = {
    TaskPriority.LOW: "Low",
    TaskPriority.MEDIUM: "Medium",
    TaskPriority.HIGH: "High",
}


def _parse_ordinal(enum_cls, value, labels):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, int):
        return enum_cls(value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return enum_cls(int(text))
    folded = text.replace("_", "").upper()
    for member, label in labels.items():
        if folded in (member.name.replace("_", ""), label.upper()):
            return member
    raise ValueError(f"{text!r} is not a valid {enum_cls.__name__}")
