"""Open-Meteo weather provider."""

import os
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger
from pydantic import ValidationError

from ..core.config import settings
from ..core.errors import WeatherProviderError
from ..core.preferences import Preferences
from ..models.openmeteo import OpenMeteoForecastResponse
from ..models.units import (
    Direction,
    Percentage,
    Pressure,
    RainMeasurement,
    RainMeasurementUnits,
    Speed,
    SpeedAndDir,
    Temp,
    UvIndex,
)
from ..models.weather import Condition, Forecast, Weather
from .http import JsonClient
from .my_location import MyLocationResolver
from .provider import Icons, get_icon_name

CURRENT_FIELDS = (
    "temperature_2m,weather_code,is_day,relative_humidity_2m,"
    "apparent_temperature,surface_pressure,wind_speed_10m,wind_gusts_10m,"
    "wind_direction_10m,precipitation,cloud_cover"
)
DAILY_FIELDS = (
    "sunset,sunrise,weather_code,temperature_2m_min,temperature_2m_max,"
    "precipitation_probability_max,uv_index_max,cloud_cover_mean,precipitation_sum"
)
HOURLY_FIELDS = (
    "temperature_2m,weather_code,precipitation_probability,is_day,cloud_cover,"
    "precipitation"
)

HPA_TO_IN_HG = 0.02953

# https://open-meteo.com/en/docs#weather_variable_documentation
CODE_TO_ICON: dict[int, tuple[Condition, str]] = {
    0: (Condition.CLEAR, Icons.CLEAR),
    1: (Condition.CLEAR, Icons.CLEAR),
    2: (Condition.CLOUDY, Icons.CLOUDY),
    3: (Condition.CLOUDY, Icons.OVERCAST),
    45: (Condition.CLOUDY, Icons.FOGGY),
    48: (Condition.CLOUDY, Icons.FOGGY),
    51: (Condition.RAINY, Icons.RAIN_SCATTERED),
    53: (Condition.RAINY, Icons.RAINY),
    55: (Condition.RAINY, Icons.RAINY),
    56: (Condition.RAINY, Icons.FREEZING_RAIN),
    57: (Condition.RAINY, Icons.FREEZING_RAIN),
    61: (Condition.RAINY, Icons.RAIN_SCATTERED),
    63: (Condition.RAINY, Icons.RAINY),
    65: (Condition.RAINY, Icons.RAINY),
    66: (Condition.RAINY, Icons.FREEZING_RAIN),
    67: (Condition.RAINY, Icons.FREEZING_RAIN),
    71: (Condition.SNOWY, Icons.SNOWY),
    73: (Condition.SNOWY, Icons.SNOWY),
    75: (Condition.SNOWY, Icons.SNOWY),
    77: (Condition.SNOWY, Icons.SNOWY),
    80: (Condition.RAINY, Icons.RAIN_SCATTERED),
    81: (Condition.RAINY, Icons.RAINY),
    82: (Condition.RAINY, Icons.RAINY),
    85: (Condition.SNOWY, Icons.SNOWY),
    86: (Condition.SNOWY, Icons.SNOWY),
    95: (Condition.STORMY, Icons.STORMY),
    96: (Condition.SNOWY, Icons.HAIL),
    99: (Condition.SNOWY, Icons.HAIL),
}

THUNDERSTORM_CODE = 95


def fix_weather_code(code: int, cloud_cover: Percentage, precipitation: RainMeasurement) -> int:
    """Downgrade false thunderstorm codes on clear days.

    Open-Meteo derives code 95 from high CAPE readings, which can happen
    under a clear sky (open-meteo/open-meteo#812). With little cloud and no
    rain the code becomes what Open-Meteo would otherwise have reported:
    1 (mainly clear) at 20% cloud cover or more, 0 (clear) below.

    Example:
        >>> fix_weather_code(95, Percentage(10), RainMeasurement(0.0))
        0
        >>> fix_weather_code(95, Percentage(25), RainMeasurement(0.0))
        1
        >>> fix_weather_code(95, Percentage(50), RainMeasurement(0.0))
        95
    """
    if code != THUNDERSTORM_CODE:
        return code
    cloud_percent = cloud_cover.get()
    if cloud_percent < 40 and precipitation.get(RainMeasurementUnits.IN) < 0.1:
        return 1 if cloud_percent >= 20 else 0
    return code


def condition_and_icon(code: int) -> tuple[Condition, str]:
    try:
        return CODE_TO_ICON[code]
    except KeyError as e:
        raise WeatherProviderError(f"Unknown Open-Meteo weather code {code}") from e


def forecast_icon(
    code: int | None, cloud_cover: float | None, precipitation: float | None, is_night: bool
) -> str:
    """Return the themed icon for one forecast entry. A null code gets a neutral icon.

    Example:
        >>> forecast_icon(None, 10, 0.0, is_night=False)
        'weather-severe-alert'
        >>> forecast_icon(95, 10, 0.0, is_night=True)
        'weather-clear-night'
    """
    if code is None:
        return get_icon_name(Icons.UNKNOWN, is_night)
    code = fix_weather_code(
        code, Percentage(_or_zero(cloud_cover)), RainMeasurement(_or_zero(precipitation))
    )
    _cond, icon = condition_and_icon(code)
    return get_icon_name(icon, is_night)


def get_timezone_name() -> str:
    """Return the IANA name of the local timezone.

    Checks the TIMEZONE setting, then ``$TZ``, ``/etc/timezone`` and the
    ``/etc/localtime`` symlink, falling back to UTC.
    """
    candidates = [settings.TIMEZONE, os.environ.get("TZ", "").lstrip(":")]

    try:
        candidates.append(Path("/etc/timezone").read_text(encoding="utf-8").strip())
    except OSError:
        pass

    try:
        target = str(Path("/etc/localtime").resolve())
        if "zoneinfo/" in target:
            candidates.append(target.split("zoneinfo/", 1)[1])
    except OSError:
        pass

    for name in candidates:
        if not name:
            continue
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            continue
        return name
    return "UTC"


def _local(text: str, tz: ZoneInfo) -> datetime:
    # Open-Meteo returns wall-clock times in the requested timezone without an offset
    return datetime.fromisoformat(text).replace(tzinfo=tz)


def _local_midnight(text: str, tz: ZoneInfo) -> datetime:
    # Date-only strings are local calendar days, not UTC midnight
    day = date.fromisoformat(text)
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def _or_zero(value: float | None) -> float:
    return 0.0 if value is None else value


class OpenMeteoProvider:
    """Fetches forecasts from Open-Meteo and normalises them into ``Weather``.

    Units are requested in the canonical units of the measurement types
    (Fahrenheit, mph, inches) so nothing needs converting on ingest, except
    surface pressure which Open-Meteo only reports in hPa.

    Example:
        >>> async def example(client, prefs, resolver):
        ...     provider = OpenMeteoProvider(client, prefs, resolver)
        ...     weather = await provider.fetch_weather()
        ...     return weather.temp.get(1)
    """

    name_key = "Open-Meteo"

    def __init__(
        self,
        client: JsonClient,
        prefs: Preferences,
        resolver: MyLocationResolver,
        base_url: str | None = None,
        timezone_name: str | None = None,
        now: Callable[[ZoneInfo], datetime] | None = None,
    ):
        self._client = client
        self._prefs = prefs
        self._resolver = resolver
        self._base_url = base_url or settings.OPENMETEO_BASE_URL
        self._timezone_name = timezone_name
        self._now = now or datetime.now

    async def _fetch(self, lat: float, lon: float, tz_name: str) -> OpenMeteoForecastResponse:
        params = {
            "latitude": lat,
            "longitude": lon,
            "current": CURRENT_FIELDS,
            "daily": DAILY_FIELDS,
            "hourly": HOURLY_FIELDS,
            # 24 is not the max
            "forecast_hours": 28,
            "temperature_unit": "fahrenheit",
            "wind_speed_unit": "mph",
            "precipitation_unit": "inch",
            "timezone": tz_name,
        }

        logger.debug("Fetching weather from Open-Meteo", url=self._base_url)
        response = await self._client.fetch_json(self._base_url, params)

        if not response.is_2xx:
            reason = None
            if isinstance(response.body, dict):
                reason = response.body.get("reason")
            logger.warning("Open-Meteo returned an error", status_code=response.status)
            raise WeatherProviderError(
                f"Open-Meteo gave status code {response.status}. "
                f"Reason: {reason or 'None Given'}",
                status_code=response.status,
            )

        try:
            return OpenMeteoForecastResponse.model_validate(response.body)
        except ValidationError as e:
            raise WeatherProviderError(f"Open-Meteo returned an invalid payload: {e}") from e

    async def fetch_weather(self) -> Weather:
        """Fetch and normalise one forecast for the main location (single attempt).

        Raises:
            LocationResolutionError: If the main location is "here" and cannot be resolved
            TransportError: If the request failed on the network
            WeatherProviderError: If Open-Meteo answered with an error or bad payload
        """
        loc = self._prefs.get_main_location()
        coords = await loc.lat_lon(self._resolver)

        tz_name = self._timezone_name or get_timezone_name()
        tz = ZoneInfo(tz_name)
        body = await self._fetch(coords.lat, coords.lon, tz_name)
        cur, daily, hourly = body.current, body.daily, body.hourly

        if not daily.time:
            raise WeatherProviderError("Open-Meteo returned no daily forecast")

        is_night = cur.is_day == 0
        precipitation = RainMeasurement(cur.precipitation)
        cloud_cover = Percentage(cur.cloud_cover)
        wind = Speed(cur.wind_speed_10m)
        wind_dir = Direction(cur.wind_direction_10m)

        code = fix_weather_code(cur.weather_code, cloud_cover, precipitation)
        condition, icon = condition_and_icon(code)

        # If sunrise/sunset have already happened, take the next day's
        now = self._now(tz)
        sunrise = _local(daily.sunrise[0], tz)
        if now > sunrise and len(daily.sunrise) > 1:
            sunrise = _local(daily.sunrise[1], tz)
        sunset = _local(daily.sunset[0], tz)
        if now > sunset and len(daily.sunset) > 1:
            sunset = _local(daily.sunset[1], tz)

        day_forecast = []
        for i, day_text in enumerate(daily.time):
            # Always day icons for the daily forecast
            f_icon = forecast_icon(
                daily.weather_code[i],
                daily.cloud_cover_mean[i],
                daily.precipitation_sum[i],
                is_night=False,
            )
            t_min, t_max = daily.temperature_2m_min[i], daily.temperature_2m_max[i]
            day_forecast.append(
                Forecast(
                    date=_local_midnight(day_text, tz),
                    icon_name=f_icon,
                    temp_min=Temp(t_min) if t_min is not None else None,
                    temp_max=Temp(t_max) if t_max is not None else None,
                    precip_chance_percent=daily.precipitation_probability_max[i],
                )
            )

        hour_forecast = []
        for i, hour_text in enumerate(hourly.time):
            f_icon = forecast_icon(
                hourly.weather_code[i],
                hourly.cloud_cover[i],
                hourly.precipitation[i],
                is_night=hourly.is_day[i] == 0,
            )
            temp = hourly.temperature_2m[i]
            hour_forecast.append(
                Forecast(
                    date=_local(hour_text, tz),
                    icon_name=f_icon,
                    temp=Temp(temp) if temp is not None else None,
                    precip_chance_percent=hourly.precipitation_probability[i],
                )
            )

        return Weather(
            condition=condition,
            temp=Temp(cur.temperature_2m),
            feels_like=Temp(cur.apparent_temperature),
            wind=wind,
            gusts=Speed(cur.wind_gusts_10m),
            wind_dir=wind_dir,
            wind_speed_and_dir=SpeedAndDir(wind, wind_dir),
            humidity=Percentage(cur.relative_humidity_2m),
            pressure=Pressure(cur.surface_pressure * HPA_TO_IN_HG),
            uv_index=UvIndex(_or_zero(daily.uv_index_max[0])),
            precipitation=precipitation,
            cloud_cover=cloud_cover,
            is_night=is_night,
            sunrise=sunrise,
            sunset=sunset,
            icon_name=get_icon_name(icon, is_night),
            provider_name=self.name_key,
            location=loc,
            forecast=tuple(day_forecast),
            hour_forecast=tuple(hour_forecast),
        )
