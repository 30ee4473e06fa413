"""API schemas for health endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class HealthzResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    version: str
    native_connected: bool = Field(default=False, alias="nativeConnected", description="Whether a native host is attached")
