"""TaskMaster REST API."""

from taskmaster.api.router import router

__all__ = ["router"]
