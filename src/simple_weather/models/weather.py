"""Weather snapshot models handed to the display layer."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .location import Location
from .units import Direction, Percentage, Pressure, RainMeasurement, Speed, SpeedAndDir, Temp, UvIndex


class Condition(str, Enum):
    CLEAR = "clear"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    SNOWY = "snowy"
    STORMY = "stormy"


class Forecast(BaseModel):
    """One forecast step: a day (min/max temperature) or an hour (single temperature)."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    date: datetime = Field(..., description="Local start of the day or hour")
    icon_name: str = Field(..., description="Themed icon name, e.g. weather-clear-night")
    temp: Temp | None = None
    temp_min: Temp | None = None
    temp_max: Temp | None = None
    precip_chance_percent: float | None = Field(
        default=None,
        description="Chance of precipitation, 0-100",
    )


class Weather(BaseModel):
    """One complete, immutable weather result.

    Built fresh on every successful fetch and replaced wholesale by the next.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    condition: Condition
    temp: Temp
    feels_like: Temp
    wind: Speed
    gusts: Speed
    wind_dir: Direction
    wind_speed_and_dir: SpeedAndDir
    humidity: Percentage
    pressure: Pressure
    uv_index: UvIndex
    precipitation: RainMeasurement
    cloud_cover: Percentage
    is_night: bool
    sunrise: datetime
    sunset: datetime
    icon_name: str
    provider_name: str
    location: Location
    # each item is 1 day apart
    forecast: tuple[Forecast, ...] = ()
    # each item is 1 hour apart
    hour_forecast: tuple[Forecast, ...] = ()
