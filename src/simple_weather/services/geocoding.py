"""Nominatim place search and reverse geocoding."""

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.config import settings
from ..core.errors import WeatherProviderError
from .http import JsonClient


class NominatimAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    town: str | None = None
    city: str | None = None
    village: str | None = None
    state: str | None = None
    country: str | None = None
    country_code: str | None = None


class NominatimPlace(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # British spelling
    licence: str | None = None
    lat: float
    lon: float
    addresstype: str | None = None
    name: str | None = None
    display_name: str
    address: NominatimAddress = Field(default_factory=NominatimAddress)


class SearchResult(BaseModel):
    """A place the user can pick as a new location."""

    button_name: str
    friendly_name: str
    lat: float
    lon: float


class ReverseResult(BaseModel):
    town: str | None = None
    country: str | None = None


def fix_display_name(place: NominatimPlace) -> str:
    """Shorten US city/town names to "City, State, U.S."; keep others as given.

    Example:
        >>> place = NominatimPlace(
        ...     lat=40.7, lon=-74.0, addresstype="city", display_name="City of New York, ...",
        ...     address=NominatimAddress(city="New York", state="New York", country_code="us"),
        ... )
        >>> fix_display_name(place)
        'New York, New York, U.S.'
    """
    addr = place.address
    if addr.country_code == "us" and addr.state:
        if place.addresstype == "city" and addr.city:
            return f"{addr.city}, {addr.state}, U.S."
        if place.addresstype == "town" and addr.town:
            return f"{addr.town}, {addr.state}, U.S."
    return place.display_name


class NominatimClient:
    """Search and reverse lookups against a Nominatim instance.

    Nominatim's usage policy requires an identifying user agent, so every
    request goes through the client's tracked session.
    """

    def __init__(self, client: JsonClient, base_url: str | None = None):
        self._client = client
        self._base_url = base_url or settings.NOMINATIM_BASE_URL

    async def search(self, query: str, existing_names: list[str] | None = None) -> list[SearchResult]:
        """Search places matching ``query``.

        A friendly name that duplicates one of ``existing_names`` is replaced
        by the longer display name.
        """
        existing = set(existing_names or [])
        response = await self._client.fetch_json(
            f"{self._base_url}/search",
            {"format": "jsonv2", "addressdetails": "1", "q": query},
            use_tracked_agent=True,
        )
        if not response.is_2xx:
            raise WeatherProviderError(
                f"Nominatim status code {response.status}.", status_code=response.status
            )
        if not isinstance(response.body, list):
            raise WeatherProviderError("Nominatim returned an unexpected body.")

        results = []
        for raw in response.body:
            try:
                place = NominatimPlace.model_validate(raw)
            except ValidationError:
                logger.debug("Skipping malformed Nominatim result")
                continue

            name = fix_display_name(place)
            friendly = place.address.city or place.address.town or name
            if friendly in existing:
                friendly = name
            results.append(
                SearchResult(button_name=name, friendly_name=friendly, lat=place.lat, lon=place.lon)
            )
        return results

    async def reverse(self, lat: float, lon: float) -> ReverseResult:
        """Look up the town and ISO country code at the given coordinates."""
        response = await self._client.fetch_json(
            f"{self._base_url}/reverse",
            {"format": "jsonv2", "lat": lat, "lon": lon},
            use_tracked_agent=True,
        )
        if not response.is_2xx or not isinstance(response.body, dict):
            raise WeatherProviderError(
                f"Nominatim reverse lookup failed with status {response.status}.",
                status_code=response.status,
            )

        try:
            address = NominatimAddress.model_validate(response.body.get("address") or {})
        except ValidationError as e:
            raise WeatherProviderError("Nominatim reverse lookup returned a bad address.") from e

        town = address.city or address.town or address.village
        country = address.country_code.upper() if address.country_code else None
        return ReverseResult(town=town, country=country)
