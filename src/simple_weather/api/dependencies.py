"""FastAPI dependencies resolving the services created in the app lifespan."""

from fastapi import HTTPException, Request

from ..core.preferences import Preferences
from ..services.geocoding import NominatimClient
from ..services.updater import WeatherUpdater


def _from_state(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=503,
            detail={"error": "Service temporarily unavailable - not initialized"},
        )
    return service


def get_updater(request: Request) -> WeatherUpdater:
    """Return the process-wide weather updater.

    Raises:
        HTTPException: 503 if the application has not finished starting
    """
    return _from_state(request, "updater")


def get_preferences(request: Request) -> Preferences:
    return _from_state(request, "prefs")


def get_geocoder(request: Request) -> NominatimClient:
    return _from_state(request, "geocoder")
