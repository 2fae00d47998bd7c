"""Models for the Open-Meteo forecast payload.

Only the fields requested by the provider are declared; the arrays of the
``daily`` and ``hourly`` blocks are parallel-indexed by ``time``.
"""

from pydantic import BaseModel, ConfigDict, model_validator


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class OpenMeteoCurrent(_Payload):
    """Current conditions block.

    Example:
        >>> cur = OpenMeteoCurrent(
        ...     time="2026-01-11T10:15", temperature_2m=71.0, weather_code=1,
        ...     is_day=1, relative_humidity_2m=40, apparent_temperature=70.0,
        ...     surface_pressure=1013.0, wind_speed_10m=5.0, wind_gusts_10m=9.0,
        ...     wind_direction_10m=180, precipitation=0.0, cloud_cover=15,
        ... )
        >>> cur.weather_code
        1
    """

    time: str
    temperature_2m: float
    weather_code: int
    is_day: int
    relative_humidity_2m: float
    apparent_temperature: float
    surface_pressure: float
    wind_speed_10m: float
    wind_gusts_10m: float
    wind_direction_10m: float
    precipitation: float = 0.0
    cloud_cover: float = 0.0


class _Series(_Payload):
    time: list[str]

    @model_validator(mode="after")
    def check_parallel(self):
        """Every declared array must be as long as ``time``."""
        expected = len(self.time)
        for name, value in self:
            if isinstance(value, list) and len(value) != expected:
                raise ValueError(
                    f"{name} has {len(value)} entries, expected {expected}"
                )
        return self


class OpenMeteoDaily(_Series):
    sunrise: list[str]
    sunset: list[str]
    weather_code: list[int | None]
    temperature_2m_min: list[float | None]
    temperature_2m_max: list[float | None]
    precipitation_probability_max: list[float | None]
    uv_index_max: list[float | None]
    cloud_cover_mean: list[float | None]
    precipitation_sum: list[float | None]


class OpenMeteoHourly(_Series):
    temperature_2m: list[float | None]
    weather_code: list[int | None]
    precipitation_probability: list[float | None]
    is_day: list[int | None]
    cloud_cover: list[float | None]
    precipitation: list[float | None]


class OpenMeteoForecastResponse(_Payload):
    """Full response of the forecast endpoint."""

    latitude: float
    longitude: float
    timezone: str | None = None
    utc_offset_seconds: int | None = None
    current: OpenMeteoCurrent
    daily: OpenMeteoDaily
    hourly: OpenMeteoHourly
