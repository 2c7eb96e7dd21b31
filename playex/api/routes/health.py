from __future__ import annotations

from fastapi import APIRouter, Request

from playex.schemas.status import HealthResponse, RootResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness probe used by load balancers. Exempt from rate limiting."""

    return HealthResponse(status="ok")


@router.get("/", response_model=RootResponse)
def root(request: Request) -> RootResponse:
    return RootResponse(
        message="Playex API is running",
        status="online",
        environment=request.app.state.settings.app_env,
    )
