"""Weather provider abstraction and the shared icon taxonomy."""

from typing import TYPE_CHECKING, Protocol

from ..core.preferences import Preferences, WeatherProviderKind
from ..models.weather import Weather

if TYPE_CHECKING:
    from .http import JsonClient
    from .my_location import MyLocationResolver


class Provider(Protocol):
    """A source of complete weather snapshots."""

    name_key: str

    async def fetch_weather(self) -> Weather: ...


class Icons:
    CLEAR = "clear"
    CLOUDY = "few-clouds"
    FOGGY = "fog"
    FREEZING_RAIN = "freezing-rain"
    FREEZING_STORM = "freezing-storm"
    HAIL = "snow"
    OVERCAST = "overcast"
    MISTY = "fog"
    RAINY = "showers"
    RAIN_SCATTERED = "showers-scattered"
    SNOWY = "snow"
    STORMY = "storm"
    WINDY = "windy"
    TORNADO = "tornado"
    UNKNOWN = "severe-alert"


def icon_has_night_variant(name: str) -> bool:
    return name in (Icons.CLEAR, Icons.CLOUDY)


def get_icon_name(name: str, is_night: bool) -> str:
    """Return the themed icon name for an icon.

    Example:
        >>> get_icon_name(Icons.CLEAR, is_night=True)
        'weather-clear-night'
        >>> get_icon_name(Icons.RAINY, is_night=True)
        'weather-showers'
    """
    full_name = f"weather-{name}"
    if is_night and icon_has_night_variant(name):
        full_name += "-night"
    return full_name


def create_provider(
    prefs: Preferences,
    client: "JsonClient",
    resolver: "MyLocationResolver",
) -> Provider:
    """Build the weather provider selected in preferences."""
    from .openmeteo import OpenMeteoProvider

    kind = prefs.get_weather_provider()
    if kind == WeatherProviderKind.OPEN_METEO:
        return OpenMeteoProvider(client, prefs, resolver)
    raise ValueError(f"Unknown weather provider: {kind!r}")
