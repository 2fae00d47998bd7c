"""User preferences: a key-value settings store and typed accessors over it."""

import json
from collections.abc import Callable, Iterable
from enum import IntEnum
from itertools import count
from pathlib import Path
from typing import Any

from loguru import logger

from ..models.location import Location
from ..models.units import (
    DirectionUnits,
    DistanceUnits,
    PressureUnits,
    RainMeasurementUnits,
    SpeedUnits,
    TempUnits,
)


class UnitPreset(IntEnum):
    CUSTOM = 0
    US = 1
    UK = 2
    METRIC = 3


class MyLocationProvider(IntEnum):
    DISABLED = 0
    IPINFO = 1
    IPAPI = 2
    SYSTEM = 3


class WeatherProviderKind(IntEnum):
    OPEN_METEO = 1


DEFAULTS: dict[str, Any] = {
    "unit-preset": UnitPreset.CUSTOM,
    "temp-unit": TempUnits.FAHRENHEIT,
    "speed-unit": SpeedUnits.MPH,
    "direction-unit": DirectionUnits.EIGHT_POINT,
    "pressure-unit": PressureUnits.IN_HG,
    "rain-measurement-unit": RainMeasurementUnits.IN,
    "distance-unit": DistanceUnits.MI,
    "locations": [],
    "main-location-index": 0,
    "my-loc-provider": MyLocationProvider.IPINFO,
    "my-loc-refresh-min": 10.0,
    "weather-provider": WeatherProviderKind.OPEN_METEO,
    "use-24-hour-clock": False,
    "is-activated": False,
    "panel-detail": "temp",
    "details-list": [
        "feelsLike",
        "windSpeedAndDir",
        "humidity",
        "gusts",
        "uvIndex",
        "pressure",
        "precipitation",
        "sunset",
    ],
}

UNIT_KEYS = (
    "unit-preset",
    "temp-unit",
    "speed-unit",
    "pressure-unit",
    "rain-measurement-unit",
    "distance-unit",
    "direction-unit",
)

ChangeCallback = Callable[[frozenset[str]], None]


class SettingsStore:
    """In-memory settings store with change notification.

    Values fall back to ``DEFAULTS`` until set. Every ``set``/``set_many``
    emits one change event carrying the set of keys that changed.

    Example:
        >>> store = SettingsStore()
        >>> seen = []
        >>> _ = store.connect(seen.append)
        >>> store.set("temp-unit", 2)
        >>> seen
        [frozenset({'temp-unit'})]
    """

    def __init__(self, values: dict[str, Any] | None = None, defaults: dict[str, Any] | None = None):
        self._defaults = dict(DEFAULTS if defaults is None else defaults)
        self._values: dict[str, Any] = dict(values or {})
        self._handlers: dict[int, ChangeCallback] = {}
        self._ids = count(1)

    def get(self, key: str) -> Any:
        if key in self._values:
            return self._values[key]
        if key in self._defaults:
            return self._defaults[key]
        raise KeyError(f"Unknown setting: {key}")

    def get_default(self, key: str) -> Any:
        return self._defaults.get(key)

    def get_int(self, key: str) -> int:
        return int(self.get(key))

    def get_float(self, key: str) -> float:
        return float(self.get(key))

    def get_bool(self, key: str) -> bool:
        return bool(self.get(key))

    def get_str(self, key: str) -> str:
        return str(self.get(key))

    def get_str_list(self, key: str) -> list[str]:
        value = self.get(key)
        if not isinstance(value, list):
            return []
        return [str(v) for v in value]

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, values: dict[str, Any]) -> None:
        changed = set()
        for key, value in values.items():
            if self._values.get(key, self._defaults.get(key)) != value:
                changed.add(key)
            self._values[key] = value
        if changed:
            self._emit(frozenset(changed))

    def connect(self, callback: ChangeCallback) -> int:
        handler_id = next(self._ids)
        self._handlers[handler_id] = callback
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._handlers.pop(handler_id, None)

    def _emit(self, keys: frozenset[str]) -> None:
        for callback in list(self._handlers.values()):
            try:
                callback(keys)
            except Exception:
                logger.exception("Settings change handler failed", keys=sorted(keys))

    @classmethod
    def load(cls, path: Path) -> "SettingsStore":
        """Load stored values from a JSON file, starting empty if it is missing or corrupt."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError:
            return cls()
        except (OSError, ValueError) as e:
            logger.warning("Could not read preferences file, using defaults", error=str(e))
            return cls()

        if not isinstance(raw, dict):
            logger.warning("Preferences file is not a JSON object, using defaults")
            return cls()
        return cls(raw)

    def save(self, path: Path) -> None:
        Path(path).write_text(json.dumps(self._values, indent=2), encoding="utf-8")


class Preferences:
    """Typed accessors over the settings store.

    Unit getters honour the unit preset: a US/UK/Metric preset overrides the
    individual unit keys, and Custom reads them directly.
    """

    def __init__(self, store: SettingsStore):
        self._store = store
        self._handler_ids: list[int] = []

    @property
    def store(self) -> SettingsStore:
        return self._store

    def free(self) -> None:
        """Disconnect every change handler registered through this object."""
        while self._handler_ids:
            self._store.disconnect(self._handler_ids.pop())

    def _on_keys(self, keys: Iterable[str], callback: Callable[[], None]) -> int:
        watched = frozenset(keys)

        def handler(changed: frozenset[str]) -> None:
            # One callback per change event even when several watched keys changed
            if changed & watched:
                callback()

        handler_id = self._store.connect(handler)
        self._handler_ids.append(handler_id)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        if handler_id in self._handler_ids:
            self._handler_ids.remove(handler_id)
        self._store.disconnect(handler_id)

    def _return_unit(self, key: str, us: int | None = None, uk: int | None = None,
                     metric: int | None = None) -> int:
        preset = self.get_unit_preset()
        if preset == UnitPreset.US and us is not None:
            return us
        if preset == UnitPreset.UK and uk is not None:
            return uk
        # UK falls back to metric for quantities it does not override
        if preset in (UnitPreset.UK, UnitPreset.METRIC) and metric is not None:
            return metric
        return self._store.get_int(key)

    def get_unit_preset(self) -> UnitPreset:
        try:
            return UnitPreset(self._store.get_int("unit-preset"))
        except ValueError:
            return UnitPreset.CUSTOM

    def get_temp_unit(self) -> int:
        return self._return_unit("temp-unit", us=TempUnits.FAHRENHEIT, metric=TempUnits.CELSIUS)

    def get_speed_unit(self) -> int:
        return self._return_unit(
            "speed-unit", us=SpeedUnits.MPH, uk=SpeedUnits.MPH, metric=SpeedUnits.KPH
        )

    def get_direction_unit(self) -> int:
        return self._store.get_int("direction-unit")

    def get_pressure_unit(self) -> int:
        return self._return_unit(
            "pressure-unit", us=PressureUnits.IN_HG, metric=PressureUnits.HPA
        )

    def get_rain_measurement_unit(self) -> int:
        return self._return_unit(
            "rain-measurement-unit",
            us=RainMeasurementUnits.IN,
            metric=RainMeasurementUnits.MM,
        )

    def get_distance_unit(self) -> int:
        return self._return_unit(
            "distance-unit", us=DistanceUnits.MI, uk=DistanceUnits.MI, metric=DistanceUnits.KM
        )

    def is_24_hour_clock(self) -> bool:
        return self._store.get_bool("use-24-hour-clock")

    def get_locations(self) -> list[Location]:
        """Return the stored locations, dropping corrupt entries.

        Never empty: with nothing usable stored, the "here" sentinel is returned.
        """
        locations = []
        for raw in self._store.get_str_list("locations"):
            loc = Location.parse(raw)
            if loc is None:
                logger.warning("Ignoring malformed stored location")
                continue
            locations.append(loc)

        if not locations:
            locations.append(Location.new_here())
        return locations

    def set_locations(self, locations: list[Location]) -> None:
        self._store.set("locations", [loc.to_string() for loc in locations])

    def get_main_location_index(self) -> int:
        return self._store.get_int("main-location-index")

    def get_main_location(self) -> Location:
        locations = self.get_locations()
        index = self.get_main_location_index()
        if 0 <= index < len(locations):
            return locations[index]
        return locations[0]

    def get_my_location_provider(self) -> MyLocationProvider:
        try:
            return MyLocationProvider(self._store.get_int("my-loc-provider"))
        except ValueError:
            return MyLocationProvider.IPINFO

    def get_my_location_refresh_min(self) -> float:
        """Minutes a resolved current location stays fresh, never below 10."""
        return max(10.0, self._store.get_float("my-loc-refresh-min"))

    def get_weather_provider(self) -> WeatherProviderKind:
        try:
            return WeatherProviderKind(self._store.get_int("weather-provider"))
        except ValueError:
            return WeatherProviderKind.OPEN_METEO

    def get_panel_detail(self) -> str:
        return self._store.get_str("panel-detail")

    def get_details_list(self) -> list[str]:
        """Return the popup details list; always eight entries.

        A stored list of the wrong length falls back to the default list.
        """
        details = self._store.get_str_list("details-list")
        if len(details) != 8:
            default = self._store.get_default("details-list") or []
            if len(default) != 8:
                return ["invalid"] * 8
            return list(default)
        return details

    def on_main_location_changed(self, callback: Callable[[], None]) -> int:
        return self._on_keys(("locations", "main-location-index"), callback)

    def on_locations_changed(self, callback: Callable[[], None]) -> int:
        return self._on_keys(("locations",), callback)

    def on_my_location_provider_changed(self, callback: Callable[[], None]) -> int:
        return self._on_keys(("my-loc-provider",), callback)

    def on_weather_provider_changed(self, callback: Callable[[], None]) -> int:
        return self._on_keys(("weather-provider",), callback)

    def on_any_unit_changed(self, callback: Callable[[], None]) -> int:
        return self._on_keys(UNIT_KEYS, callback)

    def on_details_changed(self, callback: Callable[[], None]) -> int:
        return self._on_keys(("details-list", "panel-detail", "use-24-hour-clock"), callback)
