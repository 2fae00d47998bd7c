"""API routes for weather endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from ..core.coalesce import CoalesceLimitError
from ..core.errors import TransportError, TransportErrorKind, WeatherProviderError
from ..core.preferences import Preferences
from ..models.details import display_detail, parse_detail
from ..models.display import DetailView, RefreshResponse, WeatherView
from ..models.lang import _
from ..services.geocoding import NominatimClient, SearchResult
from ..services.updater import WeatherUpdater
from .dependencies import get_geocoder, get_preferences, get_updater

router = APIRouter()

_NOT_READY = {"error": "Weather not available yet - no successful fetch"}


@router.get(
    "/v1/weather",
    response_model=WeatherView,
    summary="Get the latest weather",
    description="Latest weather snapshot for the main location, rendered in the user's units",
    responses={
        503: {
            "description": "No successful fetch yet",
            "content": {"application/json": {"example": {"detail": _NOT_READY}}},
        },
    },
)
async def get_weather(
    updater: Annotated[WeatherUpdater, Depends(get_updater)],
    prefs: Annotated[Preferences, Depends(get_preferences)],
) -> WeatherView:
    """Return the published snapshot. Never triggers a fetch.

    Example:
        >>> # GET /v1/weather
        >>> # Returns: {"location": "My Location", "temp": "22°", ...}
    """
    weather = updater.weather
    if weather is None:
        raise HTTPException(status_code=503, detail=_NOT_READY)
    return WeatherView.from_weather(weather, prefs)


@router.get(
    "/v1/details",
    response_model=list[DetailView],
    summary="Get the popup details",
    description="The user's configured details list rendered with labels",
)
async def get_details(
    updater: Annotated[WeatherUpdater, Depends(get_updater)],
    prefs: Annotated[Preferences, Depends(get_preferences)],
) -> list[DetailView]:
    weather = updater.weather
    if weather is None:
        raise HTTPException(status_code=503, detail=_NOT_READY)

    views = []
    for name in prefs.get_details_list():
        detail = parse_detail(name)
        if detail is None:
            views.append(DetailView(detail=name, text=_("Invalid detail")))
            continue
        views.append(
            DetailView(detail=detail.value, text=display_detail(weather, detail, prefs, with_label=True))
        )
    return views


@router.post(
    "/v1/refresh",
    response_model=RefreshResponse,
    summary="Refresh the weather now",
    description="Runs a fetch cycle, joining one already in flight",
    responses={
        502: {
            "description": "The fetch cycle failed",
            "content": {
                "application/json": {
                    "example": {"detail": {"error": "Bad gateway - weather fetch failed"}}
                }
            },
        },
        503: {"description": "Too many concurrent refresh requests"},
    },
)
async def refresh_weather(
    updater: Annotated[WeatherUpdater, Depends(get_updater)],
    prefs: Annotated[Preferences, Depends(get_preferences)],
) -> RefreshResponse:
    logger.info("Manual refresh requested")
    try:
        weather = await updater.refresh()
    except CoalesceLimitError as e:
        raise HTTPException(
            status_code=503,
            detail={"error": "Service temporarily unavailable - too many concurrent requests"},
        ) from e

    if weather is None:
        raise HTTPException(status_code=502, detail={"error": "Bad gateway - weather fetch failed"})
    return RefreshResponse(status="ok", weather=WeatherView.from_weather(weather, prefs))


@router.get(
    "/v1/locations/search",
    response_model=list[SearchResult],
    summary="Search places",
    description="Search places by name through Nominatim",
    responses={
        502: {"description": "Upstream API error"},
        504: {"description": "Upstream API timeout"},
    },
)
async def search_locations(
    q: Annotated[str, Query(min_length=1, max_length=200, description="Place name")],
    geocoder: Annotated[NominatimClient, Depends(get_geocoder)],
    prefs: Annotated[Preferences, Depends(get_preferences)],
) -> list[SearchResult]:
    existing = [loc.get_name() for loc in prefs.get_locations()]
    try:
        return await geocoder.search(q, existing)
    except TransportError as e:
        if e.kind is TransportErrorKind.TIMEOUT:
            logger.warning("Location search timed out")
            raise HTTPException(
                status_code=504,
                detail={"error": "Gateway timeout - upstream API did not respond in time"},
            ) from e
        logger.warning("Location search failed", kind=e.kind.value)
        raise HTTPException(status_code=502, detail={"error": "Bad gateway - upstream API error"}) from e
    except WeatherProviderError as e:
        logger.warning("Location search failed", status_code=e.status_code)
        raise HTTPException(status_code=502, detail={"error": "Bad gateway - upstream API error"}) from e
