"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

from media_capture_bridge import __version__
from media_capture_bridge.api.schemas.health import HealthzResponse

router = APIRouter()


@router.get("/healthz", response_model=HealthzResponse, summary="Health check")
@router.get("/api/healthz", include_in_schema=False)
async def healthz(request: Request) -> HealthzResponse:
    native_bridge = getattr(request.app.state, "native_bridge", None)
    return HealthzResponse(
        status="ok",
        version=__version__,
        native_connected=bool(native_bridge and native_bridge.is_attached),
    )
