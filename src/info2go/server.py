"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

FastAPI status and control API over `Info2GoService`.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from .errors import ConfigurationError, UnknownLocationError
from .events import event_to_dict
from .service import Info2GoService


def _create_router(service: Info2GoService):
    """Build an APIRouter containing the status and refresh routes."""
    try:
        from fastapi import APIRouter
    except ImportError:
        raise ImportError(
            "FastAPI is required for the info2go server. "
            "Install it with: pip install fastapi uvicorn"
        )

    router = APIRouter()

    @router.get("/health")
    async def health():
        return {"status": "ok", "online": service.is_online, "busy": service.is_busy}

    @router.get("/status")
    async def status():
        return service.status()

    @router.get("/events")
    async def events(limit: int = 50):
        return [event_to_dict(event) for event in service.events.recent(limit)]

    @router.get("/locations/{location_id}")
    async def location(location_id: str):
        return service.location_view(location_id).to_dict()

    @router.get("/locations/{location_id}/ambient")
    async def ambient(location_id: str):
        return {"current": await service.ambient_conditions(location_id)}

    @router.post("/locations/{location_id}/refresh")
    async def refresh_location(location_id: str, force: bool = False):
        result = await service.refresh_location(location_id, force_all=force)
        return {
            "location_id": result.location_id,
            "attempted": result.attempted,
            "all_succeeded": result.all_succeeded,
            "credential_invalid": result.credential_invalid,
        }

    @router.post("/refresh", status_code=202)
    async def refresh(force: bool = False):
        return {"accepted": service.start_refresh(force_all=force)}

    @router.post("/refresh/cancel")
    async def cancel():
        return {"cancelled": service.cancel_refresh()}

    @router.post("/connectivity/probe")
    async def probe():
        online = await service.prober.probe()
        credential_status = service.prober.credential_status
        return {
            "online": online,
            "credential_status": credential_status.value if credential_status else None,
        }

    return router


def create_app(service: Info2GoService, *, manage_lifecycle: bool = True) -> Any:
    """
    Build the FastAPI application.

    With `manage_lifecycle`, the app starts the service (probe plus
    background refresh) on startup and shuts it down on exit.
    """
    try:
        from fastapi import FastAPI, Request
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI is required for the info2go server. "
            "Install it with: pip install fastapi uvicorn"
        )

    @asynccontextmanager
    async def lifespan(app):
        _ = app
        if manage_lifecycle:
            await service.start(background=True)
        try:
            yield
        finally:
            if manage_lifecycle:
                await service.shutdown()

    app = FastAPI(
        title="info2go",
        description="Freshness cache and refresh scheduler status API",
        lifespan=lifespan,
    )

    @app.exception_handler(UnknownLocationError)
    async def unknown_location(request: Request, exc: UnknownLocationError):
        _ = request
        return JSONResponse({"detail": str(exc)}, status_code=404)

    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError):
        _ = request
        return JSONResponse({"detail": str(exc)}, status_code=409)

    app.include_router(_create_router(service))
    return app
