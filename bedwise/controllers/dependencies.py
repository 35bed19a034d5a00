"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from bedwise.services.placement_service import PlacementService
from bedwise.utils.config import get_settings


def get_placement_service(request: Request) -> PlacementService:
    service = getattr(request.app.state, "placement_service", None)
    if service is None:
        repository = getattr(request.app.state, "repository", None)
        if repository is not None:
            service = PlacementService(repository=repository, settings=get_settings())
            request.app.state.placement_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Placement service is not initialized",
        )
    return service
