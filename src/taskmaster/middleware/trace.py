"""Correlation ID propagation and request logging."""

import logging
import re
from contextvars import ContextVar
from time import perf_counter
from uuid import uuid4

from fastapi import Request

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Accept caller-supplied ids only when they are short and header-safe
_VALID_ID = re.compile(r"^[A-Za-z0-9._\-]{1,64}$")


def get_correlation_id() -> str | None:
    """Return the correlation id for the request being handled, if any."""
    return _correlation_id.get()


class CorrelationIdFilter(logging.Filter):
    """Expose the current correlation id to log formats as %(correlation_id)s."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True


def ensure_correlation_id(candidate: str | None) -> str:
    """Use the caller's id when it is well-formed, otherwise mint one."""
    if candidate and _VALID_ID.match(candidate):
        return candidate
    return uuid4().hex


async def trace_id_middleware(request: Request, call_next):
    """Tag the request with a correlation id and log its outcome."""
    correlation_id = ensure_correlation_id(request.headers.get(CORRELATION_HEADER))
    token = _correlation_id.set(correlation_id)
    started = perf_counter()
    try:
        response = await call_next(request)
        duration_ms = (perf_counter() - started) * 1000.0
        response.headers[CORRELATION_HEADER] = correlation_id
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {duration_ms:.1f}ms"
        )
        return response
    except Exception:
        logger.exception(f"{request.method} {request.url.path} failed")
        raise
    finally:
        _correlation_id.reset(token)
