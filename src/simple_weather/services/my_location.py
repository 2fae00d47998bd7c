"""Resolution of the user's current location.

A single ``MyLocationResolver`` is created per process. It caches the last
fix for a configurable number of minutes and coalesces concurrent requests so
that at most one provider call is ever outstanding.
"""

import time
from collections.abc import Callable
from typing import Protocol

from loguru import logger
from pydantic import ValidationError

from ..core.coalesce import RequestCoalescer
from ..core.config import settings
from ..core.errors import LocationResolutionError, NoLocationServiceError
from ..core.preferences import MyLocationProvider, Preferences
from ..models.location import LocationFix
from .geocoding import NominatimClient
from .http import JsonClient


class Locator(Protocol):
    """One way of finding the device's coordinates."""

    name: str

    async def resolve(self) -> LocationFix: ...


class SystemLocationService(Protocol):
    """OS-level location service (e.g. GeoClue) returning ``(lat, lon)``.

    Implementations raise ``PermissionError`` when the user denied access.
    """

    async def get_coordinates(self) -> tuple[float, float]: ...


class IpInfoLocator:
    """IP geolocation through ipinfo.io (``{"loc": "lat,lon", "city", "country"}``)."""

    name = "ipinfo"

    def __init__(self, client: JsonClient, url: str | None = None):
        self._client = client
        self._url = url or settings.IPINFO_URL

    async def resolve(self) -> LocationFix:
        response = await self._client.fetch_json(self._url, {})
        if not response.is_2xx or not isinstance(response.body, dict):
            raise LocationResolutionError(f"ipinfo returned status {response.status}")

        body = response.body
        try:
            lat_text, lon_text = str(body["loc"]).split(",")
            return LocationFix(
                lat=float(lat_text),
                lon=float(lon_text),
                city=body.get("city"),
                country=body.get("country"),
            )
        except (KeyError, ValueError, ValidationError) as e:
            raise LocationResolutionError("ipinfo returned an unusable location") from e


class IpApiLocator:
    """IP geolocation through ipapi.co (``{"latitude", "longitude", "city", "country_code"}``)."""

    name = "ipapi"

    def __init__(self, client: JsonClient, url: str | None = None):
        self._client = client
        self._url = url or settings.IPAPI_URL

    async def resolve(self) -> LocationFix:
        response = await self._client.fetch_json(self._url, {})
        if not response.is_2xx or not isinstance(response.body, dict):
            raise LocationResolutionError(f"ipapi returned status {response.status}")

        body = response.body
        # ipapi reports rate limiting as a 200 with an error flag
        if body.get("error"):
            raise LocationResolutionError(f"ipapi error: {body.get('reason', 'unknown')}")
        try:
            return LocationFix(
                lat=body["latitude"],
                lon=body["longitude"],
                city=body.get("city"),
                country=body.get("country_code"),
            )
        except (KeyError, ValidationError) as e:
            raise LocationResolutionError("ipapi returned an unusable location") from e


class SystemLocator:
    """Coordinates from the OS location service, named through reverse geocoding."""

    name = "system"

    def __init__(self, service: SystemLocationService | None, geocoder: NominatimClient):
        self._service = service
        self._geocoder = geocoder

    async def resolve(self) -> LocationFix:
        if self._service is None:
            raise NoLocationServiceError()
        try:
            lat, lon = await self._service.get_coordinates()
        except PermissionError as e:
            raise NoLocationServiceError("Access to the system location service was denied") from e

        try:
            place = await self._geocoder.reverse(lat, lon)
        except Exception as e:
            # Bare coordinates are still a usable fix
            logger.warning("Reverse geocoding failed, using bare coordinates", error=str(e))
            return LocationFix(lat=lat, lon=lon)
        return LocationFix(lat=lat, lon=lon, city=place.town, country=place.country)


class DisabledLocator:
    name = "disabled"

    async def resolve(self) -> LocationFix:
        raise LocationResolutionError("Current location lookup is disabled")


def create_locator(
    kind: MyLocationProvider,
    client: JsonClient,
    system_service: SystemLocationService | None = None,
) -> Locator:
    """Build the locator matching the user's provider preference."""
    if kind == MyLocationProvider.IPINFO:
        return IpInfoLocator(client)
    if kind == MyLocationProvider.IPAPI:
        return IpApiLocator(client)
    if kind == MyLocationProvider.SYSTEM:
        return SystemLocator(system_service, NominatimClient(client))
    return DisabledLocator()


class MyLocationResolver:
    """Owns the cached current-location fix and the in-flight lookup.

    Example:
        >>> async def example(prefs, client):
        ...     resolver = MyLocationResolver(prefs, client)
        ...     resolver.setup()
        ...     fix = await resolver.get()
        ...     resolver.teardown()
        ...     return fix.lat, fix.lon
    """

    _KEY = "my-location"

    def __init__(
        self,
        prefs: Preferences,
        client: JsonClient,
        system_service: SystemLocationService | None = None,
        locator_factory: Callable[[MyLocationProvider], Locator] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._prefs = prefs
        self._client = client
        self._system_service = system_service
        self._locator_factory = locator_factory or (
            lambda kind: create_locator(kind, self._client, self._system_service)
        )
        self._clock = clock
        self._coalescer = RequestCoalescer(max_waiters=settings.REQUEST_COALESCE_LIMIT)
        self._cached: LocationFix | None = None
        self._last_fetched: float | None = None
        self._locator: Locator | None = None
        self._handler_id: int | None = None

    def setup(self) -> None:
        self._locator = self._locator_factory(self._prefs.get_my_location_provider())
        if self._handler_id is None:
            self._handler_id = self._prefs.on_my_location_provider_changed(self._on_provider_changed)

    def teardown(self) -> None:
        if self._handler_id is not None:
            self._prefs.disconnect(self._handler_id)
            self._handler_id = None
        self._locator = None
        self._cached = None
        self._last_fetched = None

    def _on_provider_changed(self) -> None:
        self._locator = self._locator_factory(self._prefs.get_my_location_provider())
        # A fix from another provider should not outlive the switch
        self._cached = None
        self._last_fetched = None
        logger.info("Current location provider changed", provider=self._locator.name)

    @property
    def cached(self) -> LocationFix | None:
        return self._cached

    def _is_fresh(self) -> bool:
        if self._cached is None or self._last_fetched is None:
            return False
        age_min = (self._clock() - self._last_fetched) / 60.0
        return age_min < self._prefs.get_my_location_refresh_min()

    async def get(self) -> LocationFix:
        """Return the current location fix.

        The refresh timestamp records the last lookup attempt, failed or not.
        While it is younger than the refresh interval the cached fix is
        returned without a lookup, so after a failure the previous fix keeps
        being served until the interval runs out. With nothing cached every
        call looks up again and raises on failure.

        Raises:
            NoLocationServiceError: If the system location service is unavailable
            LocationResolutionError: If the location could not be resolved
        """
        if self._is_fresh():
            return self._cached.model_copy()
        return await self._coalescer.coalesce(self._KEY, self._resolve)

    def _stamp_attempt(self, locator: Locator) -> None:
        if self._locator is locator:
            self._last_fetched = self._clock()

    async def _resolve(self) -> LocationFix:
        if self._locator is None:
            self.setup()
        locator = self._locator

        try:
            fix = await locator.resolve()
        except NoLocationServiceError:
            self._stamp_attempt(locator)
            logger.warning("System location service unavailable", provider=locator.name)
            raise
        except Exception as e:
            self._stamp_attempt(locator)
            logger.error("Failed to get current location", provider=locator.name, error=str(e))
            if isinstance(e, LocationResolutionError):
                raise
            raise LocationResolutionError("Failed to get My Location.") from e

        if self._locator is not locator:
            # Provider switched mid-lookup, the fix belongs to the old one
            logger.debug("Discarding fix from replaced provider", provider=locator.name)
            return fix.model_copy()

        self._cached, self._last_fetched = fix, self._clock()
        logger.debug("Current location resolved", provider=locator.name, city=fix.city)
        return fix.model_copy()
