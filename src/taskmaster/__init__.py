"""TaskMaster - personal task manager service."""

__version__ = "0.1.0"
