"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and services, registers routers, and runs startup
initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.auth_controller import router as auth_router
from backend.controllers.pricing_controller import router as pricing_router
from backend.repository.data_repository import DataRepository
from backend.services.auth_service import AuthService
from backend.services.pricing_service import PricingWorkflowService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Services are attached to app.state so controllers resolve them through
    dependencies; nothing is held in module-level singletons.
    """
    settings = settings or get_settings()

    repository = DataRepository(settings)
    pricing_service = PricingWorkflowService(
        repository=repository,
        settings=settings,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(auth_router)
    app.include_router(pricing_router)

    app.state.repository = repository
    app.state.pricing_service = pricing_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The price model is not trained here: every suggest/apply call retrains
    from the collection it just loaded.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_synthetic_rooms:
        logger.info("Startup: seeding synthetic rooms (skipped if Rooms table not empty)")
        repository.seed_synthetic_rooms()

    if not settings.admin_token:
        logger.warning("Startup: ADMIN_TOKEN not set; pricing endpoints are unauthenticated")

    logger.info("Startup complete | system ready")


# Module-level app object for uvicorn
app = create_app()
