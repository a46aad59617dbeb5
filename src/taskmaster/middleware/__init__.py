"""Middleware components for TaskMaster API."""

from taskmaster.middleware.security import security_headers_middleware
from taskmaster.middleware.trace import (
    CORRELATION_HEADER,
    CorrelationIdFilter,
    get_correlation_id,
    trace_id_middleware,
)

__all__ = [
    "CORRELATION_HEADER",
    "CorrelationIdFilter",
    "get_correlation_id",
    "security_headers_middleware",
    "trace_id_middleware",
]
