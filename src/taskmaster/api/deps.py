"""API dependencies."""

import logging
import secrets
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.auth.context import CurrentUser
from taskmaster.config import Environment, settings
from taskmaster.db import base as db_base
from taskmaster.models.task import USER_ID_MAX_LENGTH

logger = logging.getLogger("taskmaster.api")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session; one transaction per request."""
    async with db_base.async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def verify_api_key(
    authorization: str | None = Header(None),
    x_api_key: str | None = Header(None, alias="X-API-Key"),
) -> str:
    """
    Verify the shared API key and return the auth type.

    Fails closed: when no key is configured and insecure dev mode is not
    explicitly enabled, every request is rejected.
    """
    if settings.allow_insecure_dev and settings.env == Environment.DEVELOPMENT:
        return "insecure_dev"

    api_key = None
    if authorization and authorization.startswith("Bearer "):
        api_key = authorization[7:]
    elif x_api_key:
        api_key = x_api_key

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Use Authorization: Bearer <key> or X-API-Key header",
        )

    if settings.api_key:
        if secrets.compare_digest(api_key, settings.api_key):
            return "api_key"
        raise HTTPException(status_code=401, detail="Invalid API key")

    logger.error("SECURITY VIOLATION: No API key configured. Set TASKMASTER_API_KEY.")
    raise HTTPException(
        status_code=503,
        detail="Server misconfigured: authentication not properly initialized",
    )


async def get_current_user(
    request: Request,
    auth_type: str = Depends(verify_api_key),
) -> CurrentUser:
    """
    Resolve the request owner from the identity header.

    A missing owner is not rejected here; the engine reports it as
    Unauthorized before touching any data.
    """
    owner_id = (request.headers.get(settings.user_header) or "").strip()
    if not owner_id:
        return CurrentUser.anonymous()
    if len(owner_id) > USER_ID_MAX_LENGTH:
        raise HTTPException(status_code=400, detail="Invalid user ID")
    return CurrentUser(is_authenticated=True, owner_id=owner_id, auth_type=auth_type)


def validate_auth_config() -> None:
    """
    Validate authentication configuration at startup.

    Raises:
        RuntimeError: If configuration is insecure for the current environment
    """
    if settings.allow_insecure_dev and settings.env != Environment.DEVELOPMENT:
        raise RuntimeError(
            f"SECURITY ERROR: allow_insecure_dev=true is only permitted in development. "
            f"Current environment: {settings.env.value}. "
            f"Set TASKMASTER_ALLOW_INSECURE_DEV=false for {settings.env.value}."
        )

    if not settings.allow_insecure_dev and not settings.api_key:
        raise RuntimeError(
            "SECURITY ERROR: TASKMASTER_API_KEY is required unless "
            "TASKMASTER_ALLOW_INSECURE_DEV=true in development."
        )

    if settings.allow_insecure_dev:
        logger.warning(
            "=" * 80 + "\n"
            "WARNING: Running in INSECURE DEV MODE\n"
            "  - API key verification is DISABLED\n"
            f"  - Owner identity is taken from the {settings.user_header} header as-is\n"
            "  - Set TASKMASTER_ALLOW_INSECURE_DEV=false for any deployment\n"
            + "=" * 80
        )
    else:
        logger.info(f"Authentication enabled: shared API key for {settings.env.value}")
