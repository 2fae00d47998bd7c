"""Response models for the display API.

Every measurement is rendered to text with the user's current unit
preferences, so clients never convert anything themselves.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ..core.preferences import Preferences
from .details import Detail, display_detail, parse_detail
from .lang import display_day_of_week, display_time
from .weather import Forecast, Weather


def _precip_chance(forecast: Forecast) -> str | None:
    if forecast.precip_chance_percent is None:
        return None
    return f"{round(forecast.precip_chance_percent)}%"


class ForecastView(BaseModel):
    """One rendered forecast step.

    Example:
        >>> view = ForecastView(date=datetime(2025, 6, 1), label="Sunday", icon="weather-clear")
        >>> view.tempMin is None
        True
    """

    date: datetime = Field(..., description="Local start of the day or hour")
    label: str = Field(..., description="Weekday name or clock time")
    icon: str = Field(..., description="Themed icon name")
    temp: str | None = None
    tempMin: str | None = None
    tempMax: str | None = None
    precipChance: str | None = None

    @classmethod
    def for_day(cls, forecast: Forecast, prefs: Preferences) -> "ForecastView":
        return cls(
            date=forecast.date,
            label=display_day_of_week(forecast.date, use_today=True),
            icon=forecast.icon_name,
            tempMin=forecast.temp_min.display(prefs) if forecast.temp_min else None,
            tempMax=forecast.temp_max.display(prefs) if forecast.temp_max else None,
            precipChance=_precip_chance(forecast),
        )

    @classmethod
    def for_hour(cls, forecast: Forecast, prefs: Preferences) -> "ForecastView":
        return cls(
            date=forecast.date,
            label=display_time(forecast.date, prefs),
            icon=forecast.icon_name,
            temp=forecast.temp.display(prefs) if forecast.temp else None,
            precipChance=_precip_chance(forecast),
        )


class WeatherView(BaseModel):
    """The latest weather snapshot rendered for display."""

    location: str = Field(..., description="Name of the main location")
    provider: str = Field(..., description="Weather provider the data came from")
    condition: str
    icon: str
    isNight: bool
    panel: str = Field(..., description="Text of the detail shown in the panel")
    temp: str
    feelsLike: str
    wind: str
    gusts: str
    humidity: str
    pressure: str
    uvIndex: str
    precipitation: str
    sunrise: str
    sunset: str
    forecast: list[ForecastView] = Field(default_factory=list)
    hourForecast: list[ForecastView] = Field(default_factory=list)

    @classmethod
    def from_weather(cls, weather: Weather, prefs: Preferences) -> "WeatherView":
        panel_detail = parse_detail(prefs.get_panel_detail()) or Detail.TEMP

        def show(detail: Detail) -> str:
            return display_detail(weather, detail, prefs)

        return cls(
            location=weather.location.get_name(),
            provider=weather.provider_name,
            condition=weather.condition.value,
            icon=weather.icon_name,
            isNight=weather.is_night,
            panel=show(panel_detail),
            temp=show(Detail.TEMP),
            feelsLike=show(Detail.FEELS_LIKE),
            wind=show(Detail.WIND_SPEED_AND_DIR),
            gusts=show(Detail.GUSTS),
            humidity=show(Detail.HUMIDITY),
            pressure=show(Detail.PRESSURE),
            uvIndex=show(Detail.UV_INDEX),
            precipitation=show(Detail.PRECIPITATION),
            sunrise=show(Detail.SUNRISE),
            sunset=show(Detail.SUNSET),
            forecast=[ForecastView.for_day(f, prefs) for f in weather.forecast],
            hourForecast=[ForecastView.for_hour(f, prefs) for f in weather.hour_forecast],
        )


class DetailView(BaseModel):
    detail: str
    text: str


class RefreshResponse(BaseModel):
    status: str
    weather: WeatherView | None = None
