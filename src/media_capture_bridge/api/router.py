"""Top-level API router (prefixed under /api)."""

from __future__ import annotations

from fastapi import APIRouter

from media_capture_bridge.api.endpoints import command, native

api_router = APIRouter(prefix="/api")

api_router.include_router(command.router, tags=["command"])
api_router.include_router(native.router, tags=["native"])
