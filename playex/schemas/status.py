"""Response models for service status endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field("ok", description="Always 'ok' while the process serves requests")


class RootResponse(BaseModel):
    """Banner returned by the API root."""

    message: str = Field(..., description="Human-readable service banner")
    status: str = Field(..., description="Service state, 'online' when serving")
    environment: str = Field(..., description="Deployment environment (APP_ENV)")
