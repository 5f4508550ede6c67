"""
FastAPI application for the task manager.

Only the auth surface and the permission-check endpoints live here;
task and project CRUD is mounted by the business-logic layer.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskmanager.api.access import router as access_router
from taskmanager.auth import AuthResolver, LinkCodeService, auth_router
from taskmanager.auth.rate_limit import RateLimiter
from taskmanager.config import Settings, get_settings
from taskmanager.core.utils import Clock, SystemClock
from taskmanager.integrations.sentry import init_sentry
from taskmanager.storage import InMemoryStore, create_local_storage

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup app resources."""
    settings: Settings = app.state.settings

    if init_sentry(settings):
        logger.info("Sentry error tracking enabled")

    logger.info(f"Task manager API starting in {settings.environment} mode")

    yield

    logger.info("Task manager API shutting down")


# =============================================================================
# App Setup
# =============================================================================


def create_app(
    settings: Settings | None = None,
    store: InMemoryStore | None = None,
    clock: Clock | None = None,
    jwks_client: Any = None,
) -> FastAPI:
    """
    Build the application.

    Every collaborator can be injected; tests pass a frozen clock, a seeded
    store and a stub key set.
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    store = store or create_local_storage(clock)

    app = FastAPI(
        title="Task Manager API",
        description="Team task manager: authentication and access control",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.storage = store
    app.state.resolver = AuthResolver(store, settings, clock=clock, jwks_client=jwks_client)
    app.state.link_codes = LinkCodeService(
        store,
        store,
        clock=clock,
        ttl=timedelta(seconds=settings.discord_link_code_ttl_seconds),
    )
    app.state.rate_limiters = {
        "session": RateLimiter(
            settings.session_rate_limit,
            settings.rate_limit_window_seconds,
            clock=clock,
            name="session",
        ),
        "link_code": RateLimiter(
            settings.link_code_rate_limit,
            settings.rate_limit_window_seconds,
            clock=clock,
            name="link_code",
        ),
    }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(access_router)

    return app
