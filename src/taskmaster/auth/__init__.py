"""TaskMaster authentication module."""

from taskmaster.auth.context import CurrentUser

__all__ = ["CurrentUser"]
