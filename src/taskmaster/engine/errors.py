"""TaskMaster engine errors."""


class TaskMasterError(Exception):
    """Base error for TaskMaster operations."""

    def __init__(self, message: str, code: str = "TASKMASTER_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class UnauthorizedError(TaskMasterError):
    """No authenticated owner on the request."""

    def __init__(self, message: str = "Authentication is required."):
        super().__init__(message, "UNAUTHORIZED")


class NotFoundError(TaskMasterError):
    """Entity is absent or owned by someone else."""

    def __init__(self, message: str):
        super().__init__(message, "NOT_FOUND")


class TaskNotFound(NotFoundError):
    """Task does not exist for this owner."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found.")
        self.task_id = task_id


class TagNotFound(NotFoundError):
    """Tag does not exist for this owner."""

    def __init__(self, tag_id: str):
        super().__init__(f"Tag {tag_id} not found.")
        self.tag_id = tag_id


class ConcurrencyConflict(TaskMasterError):
    """Supplied version token no longer matches the stored task."""

    def __init__(self, task_id: str):
        super().__init__(
            "The task has been modified by another process.",
            "CONCURRENCY_CONFLICT",
        )
        self.task_id = task_id


class ValidationFailure(TaskMasterError):
    """A caller-supplied field violates a structural constraint."""

    def __init__(self, field: str, message: str):
        super().__init__(message, "VALIDATION_FAILED")
        self.field = field
