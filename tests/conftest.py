"""Pytest configuration and fixtures."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from simple_weather.api.dependencies import get_geocoder, get_preferences, get_updater
from simple_weather.app import app
from simple_weather.core.preferences import Preferences, SettingsStore
from simple_weather.models.location import Location, LocationFix
from simple_weather.models.units import (
    Direction,
    Percentage,
    Pressure,
    RainMeasurement,
    Speed,
    SpeedAndDir,
    Temp,
    UvIndex,
)
from simple_weather.models.weather import Condition, Forecast, Weather

NEW_YORK = ZoneInfo("America/New_York")


def make_weather(**overrides) -> Weather:
    """A plausible snapshot for a summer afternoon in New York."""
    wind, wind_dir = Speed(10), Direction(45)
    fields = dict(
        condition=Condition.CLEAR,
        temp=Temp(71),
        feels_like=Temp(70),
        wind=wind,
        gusts=Speed(18),
        wind_dir=wind_dir,
        wind_speed_and_dir=SpeedAndDir(wind, wind_dir),
        humidity=Percentage(40),
        pressure=Pressure(29.92),
        uv_index=UvIndex(6.4),
        precipitation=RainMeasurement(0.0),
        cloud_cover=Percentage(10),
        is_night=False,
        sunrise=datetime(2025, 6, 2, 5, 25, tzinfo=NEW_YORK),
        sunset=datetime(2025, 6, 1, 20, 24, tzinfo=NEW_YORK),
        icon_name="weather-clear",
        provider_name="Open-Meteo",
        location=Location.new_coords("New York", 40.7, -73.97),
        forecast=(
            Forecast(
                date=datetime(2025, 6, 1, tzinfo=NEW_YORK),
                icon_name="weather-clear",
                temp_min=Temp(60),
                temp_max=Temp(80),
                precip_chance_percent=5,
            ),
        ),
        hour_forecast=(
            Forecast(
                date=datetime(2025, 6, 1, 15, tzinfo=NEW_YORK),
                icon_name="weather-few-clouds",
                temp=Temp(72),
                precip_chance_percent=10,
            ),
        ),
    )
    fields.update(overrides)
    return Weather(**fields)


def make_openmeteo_payload(
    *,
    temp: float = 71.0,
    code: int = 1,
    is_day: int = 1,
    cloud_cover: float = 15,
    precipitation: float = 0.0,
    sunrise: tuple[str, str] = ("2025-06-01T05:25", "2025-06-02T05:25"),
    sunset: tuple[str, str] = ("2025-06-01T20:24", "2025-06-02T20:25"),
    daily_codes: tuple[int, int] = (1, 95),
    hours: int = 2,
) -> dict:
    """Build a forecast body in the shape Open-Meteo returns for our query."""
    return {
        "latitude": 40.7,
        "longitude": -73.97,
        "timezone": "America/New_York",
        "utc_offset_seconds": -14400,
        "current": {
            "time": "2025-06-01T15:00",
            "interval": 900,
            "temperature_2m": temp,
            "weather_code": code,
            "is_day": is_day,
            "relative_humidity_2m": 40,
            "apparent_temperature": temp - 1,
            "surface_pressure": 1013.0,
            "wind_speed_10m": 10.0,
            "wind_gusts_10m": 18.0,
            "wind_direction_10m": 45,
            "precipitation": precipitation,
            "cloud_cover": cloud_cover,
        },
        "daily": {
            "time": ["2025-06-01", "2025-06-02"],
            "sunrise": list(sunrise),
            "sunset": list(sunset),
            "weather_code": list(daily_codes),
            "temperature_2m_min": [60.0, 62.0],
            "temperature_2m_max": [80.0, 78.0],
            "precipitation_probability_max": [5, 60],
            "uv_index_max": [6.4, 5.0],
            "cloud_cover_mean": [10, 30],
            "precipitation_sum": [0.0, 0.0],
        },
        "hourly": {
            "time": [f"2025-06-01T{15 + i:02d}:00" for i in range(hours)],
            "temperature_2m": [72.0 + i for i in range(hours)],
            "weather_code": [2] * hours,
            "precipitation_probability": [10] * hours,
            "is_day": [1] * hours,
            "cloud_cover": [50] * hours,
            "precipitation": [0.0] * hours,
        },
    }


class FakeResolver:
    """Stands in for MyLocationResolver; counts lookups."""

    def __init__(self, fix: LocationFix | None = None, error: Exception | None = None):
        self.fix = fix or LocationFix(lat=40.7, lon=-73.97, city="New York", country="US")
        self.error = error
        self.calls = 0

    async def get(self) -> LocationFix:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.fix


class FakeUpdater:
    """Stands in for WeatherUpdater in API tests."""

    def __init__(self, weather: Weather | None = None):
        self.weather = weather
        self.running = True
        self.refresh_result: Weather | None = weather
        self.refresh_error: Exception | None = None
        self.refresh_calls = 0

    async def refresh(self) -> Weather | None:
        self.refresh_calls += 1
        if self.refresh_error is not None:
            raise self.refresh_error
        if self.refresh_result is not None:
            self.weather = self.refresh_result
        return self.refresh_result


class FakeGeocoder:
    def __init__(self, results=None, error: Exception | None = None):
        self.results = results or []
        self.error = error
        self.queries: list[tuple[str, list[str]]] = []

    async def search(self, query, existing_names=None):
        self.queries.append((query, existing_names))
        if self.error is not None:
            raise self.error
        return self.results


@pytest.fixture
def store():
    """A settings store holding only defaults."""
    return SettingsStore()


@pytest.fixture
def prefs(store):
    return Preferences(store)


@pytest.fixture
def weather():
    return make_weather()


@pytest.fixture
def fake_updater():
    return FakeUpdater()


@pytest.fixture
def fake_geocoder():
    return FakeGeocoder()


@pytest.fixture(scope="function")
def client(prefs, fake_updater, fake_geocoder):
    """Create a test client wired to fake services.

    The lifespan is not run, so nothing touches the network.
    """
    app.dependency_overrides[get_updater] = lambda: fake_updater
    app.dependency_overrides[get_preferences] = lambda: prefs
    app.dependency_overrides[get_geocoder] = lambda: fake_geocoder
    app.state.updater = fake_updater
    yield TestClient(app)
    app.dependency_overrides.clear()
    del app.state.updater
