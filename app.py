"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and placement service, registers the router, and
runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from bedwise.controllers.placement_controller import router as placement_router
from bedwise.repository.data_repository import DataRepository
from bedwise.services.placement_service import PlacementService
from bedwise.utils.config import Settings, get_settings
from bedwise.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Services are injected through app.state so every dependency is traceable
    from this function.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    repository = DataRepository(settings)
    placement_service = PlacementService(repository=repository, settings=settings)

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

    app.include_router(placement_router)

    app.state.repository = repository
    app.state.placement_service = placement_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before seeding; seeding is skipped once any room exists.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo facility (skipped if rooms exist)")
        repository.seed_demo_data()

    logger.info("Startup complete, placement engine ready")


# Module-level app object for uvicorn
app = create_app()
