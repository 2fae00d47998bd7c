"""Details that can be shown in the panel or the popup.

Each detail maps to an accessor that pulls a displayable value off a
``Weather`` snapshot, and to a label format.
"""

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from .lang import _
from .units import Displayable, TimeOfDay
from .weather import Weather

if TYPE_CHECKING:
    from ..core.preferences import Preferences


class Detail(str, Enum):
    TEMP = "temp"
    FEELS_LIKE = "feelsLike"
    WIND_SPEED_AND_DIR = "windSpeedAndDir"
    HUMIDITY = "humidity"
    GUSTS = "gusts"
    UV_INDEX = "uvIndex"
    PRESSURE = "pressure"
    PRECIPITATION = "precipitation"
    SUNRISE = "sunrise"
    SUNSET = "sunset"


DETAIL_ACCESSORS: dict[Detail, Callable[[Weather], Displayable]] = {
    Detail.TEMP: lambda w: w.temp,
    Detail.FEELS_LIKE: lambda w: w.feels_like,
    Detail.WIND_SPEED_AND_DIR: lambda w: w.wind_speed_and_dir,
    Detail.HUMIDITY: lambda w: w.humidity,
    Detail.GUSTS: lambda w: w.gusts,
    Detail.UV_INDEX: lambda w: w.uv_index,
    Detail.PRESSURE: lambda w: w.pressure,
    Detail.PRECIPITATION: lambda w: w.precipitation,
    Detail.SUNRISE: lambda w: TimeOfDay(w.sunrise),
    Detail.SUNSET: lambda w: TimeOfDay(w.sunset),
}

# Passed through gettext when rendered
DETAIL_FORMATS: dict[Detail, str] = {
    Detail.TEMP: "Temp: %s",
    Detail.FEELS_LIKE: "Feels Like: %s",
    Detail.WIND_SPEED_AND_DIR: "Wind: %s",
    Detail.HUMIDITY: "Humidity: %s",
    Detail.GUSTS: "Gusts: %s",
    Detail.UV_INDEX: "UV High: %s",
    Detail.PRESSURE: "Pressure: %s",
    Detail.PRECIPITATION: "Precipitation: %s",
    Detail.SUNRISE: "Sunrise: %s",
    Detail.SUNSET: "Sunset: %s",
}


def parse_detail(value: str) -> Detail | None:
    """Return the detail named ``value``, or None for unknown names.

    Example:
        >>> parse_detail("gusts")
        <Detail.GUSTS: 'gusts'>
        >>> parse_detail("invalid") is None
        True
    """
    try:
        return Detail(value)
    except ValueError:
        return None


def display_detail(weather: Weather, detail: Detail, prefs: "Preferences",
                   with_label: bool = False) -> str:
    value = DETAIL_ACCESSORS[detail](weather).display(prefs)
    if not with_label:
        return value
    return _(DETAIL_FORMATS[detail]) % value
