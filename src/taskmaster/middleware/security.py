"""Security response headers."""

from fastapi import Request

from taskmaster.config import settings


async def security_headers_middleware(request: Request, call_next):
    """Add the configured hardening headers to every response."""
    response = await call_next(request)
    for name, value in settings.security_headers.items():
        if name not in response.headers:
            response.headers[name] = value
    return response
