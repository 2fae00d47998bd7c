"""Health check endpoints for Kubernetes probes."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model.

    Example:
        >>> response = HealthResponse(status="ok")
        >>> response.status
        'ok'
    """

    status: str


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Check if the application process is running",
    responses={
        200: {
            "description": "Application is alive",
            "content": {"application/json": {"example": {"status": "ok"}}},
        },
    },
)
async def health_check() -> HealthResponse:
    """Liveness probe for Kubernetes.

    Always returns 200 OK to indicate the process is running.
    Does not check external dependencies or service state.
    """
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness probe",
    description="Check if the weather updater is running",
    responses={
        200: {
            "description": "Application is ready",
            "content": {"application/json": {"example": {"status": "ok"}}},
        },
        503: {
            "description": "Weather updater not running",
            "content": {"application/json": {"example": {"status": "starting"}}},
        },
    },
)
async def readiness_check(request: Request):
    """Readiness probe for Kubernetes.

    Ready once the updater's refresh timer runs. Does NOT wait for the first
    successful fetch, so an unreachable Open-Meteo never marks the pod unready.

    Example:
        >>> # GET /ready
        >>> # Returns: {"status": "ok"}
    """
    updater = getattr(request.app.state, "updater", None)
    if updater is None or not updater.running:
        return JSONResponse(status_code=503, content={"status": "starting"})
    return HealthResponse(status="ok")
