"""TaskMaster main application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskmaster import __version__
from taskmaster.api import router
from taskmaster.api.deps import validate_auth_config
from taskmaster.config import settings
from taskmaster.db.base import close_db, init_db
from taskmaster.middleware.security import security_headers_middleware
from taskmaster.middleware.trace import CorrelationIdFilter, trace_id_middleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(CorrelationIdFilter())
logger = logging.getLogger("taskmaster")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting TaskMaster server...")
    logger.info(f"Environment: {settings.env.value}")
    logger.info(f"Version token scheme: {settings.version_token_scheme.value}")

    # Fail fast on insecure authentication settings
    validate_auth_config()

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down TaskMaster server...")
    await close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title="TaskMaster",
    description="Personal task manager with tags, search and optimistic concurrency",
    version=__version__,
    lifespan=lifespan,
)

app.middleware("http")(security_headers_middleware)

# Correlation id on every request and response
app.middleware("http")(trace_id_middleware)

# Explicit allowlist; ETag must be exposed for browser clients to send If-Match
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allowed_methods,
    allow_headers=settings.cors_allowed_headers,
    expose_headers=settings.cors_expose_headers,
)

app.include_router(router)


def main():
    """Entry point for the application."""
    uvicorn.run(
        "taskmaster.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
