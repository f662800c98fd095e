"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Logging: configured once from LOG_LEVEL
  2. Lifespan manager: handles startup/shutdown (DB table creation, cleanup)
  3. CORS middleware: allows frontend origins, with credentials so the
     session cookie is sent
  4. Exception handlers: map operational errors to HTTP responses
  5. Router registration

Running locally:
    uvicorn webauth.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webauth.config import settings
from webauth.database import engine, Base
from webauth.exceptions import register_exception_handlers
from webauth.models import User  # noqa: F401
from webauth.routers import auth, users


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      Creates all database tables if they don't exist.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Password login, JWT sessions, password reset and role-based access",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

# auth first: its static paths (/me, /session) must win over /{user_id}
app.include_router(auth.router, prefix="/api/v1/users", tags=["Auth"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for deployment health checks."""
    return {"status": "ok", "version": settings.APP_VERSION}
