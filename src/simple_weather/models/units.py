"""Immutable measurement types.

Each measurement stores one canonical unit and converts on read, which makes
it hard to mix units up. Every type also knows how to display itself using
the unit the user picked in their preferences.
"""

from datetime import datetime
from enum import IntEnum
from typing import TYPE_CHECKING, Protocol

from ..core.errors import InvalidUnitError
from .lang import _, display_time, format_decimal, round_half_up

if TYPE_CHECKING:
    from ..core.preferences import Preferences


class Displayable(Protocol):
    """Anything that can render itself for the user."""

    def display(self, prefs: "Preferences") -> str: ...


class TempUnits(IntEnum):
    FAHRENHEIT = 1
    CELSIUS = 2


class SpeedUnits(IntEnum):
    MPH = 1
    MPS = 2
    KPH = 3
    KN = 4
    FPS = 5
    BEAUFORT = 6


class DirectionUnits(IntEnum):
    DEGREES = 1
    EIGHT_POINT = 2


class PressureUnits(IntEnum):
    IN_HG = 1
    HPA = 2
    MM_HG = 3


class RainMeasurementUnits(IntEnum):
    IN = 1
    MM = 2
    CM = 3
    PT = 4


class DistanceUnits(IntEnum):
    MI = 1
    KM = 2
    FT = 3
    M = 4


def _coerce_unit(enum_cls: type[IntEnum], unit: int, quantity: str) -> IntEnum:
    # bool is an int subclass but never a unit
    if isinstance(unit, bool):
        raise InvalidUnitError(f"{quantity} unit invalid: {unit!r}")
    try:
        return enum_cls(unit)
    except ValueError as e:
        raise InvalidUnitError(f"{quantity} unit invalid: {unit!r}") from e


class _Measurement:
    """Base for single-value immutable measurements."""

    __slots__ = ("_value",)

    def __init__(self, value: float):
        object.__setattr__(self, "_value", float(value))

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._value == other._value

    def __hash__(self):
        return hash((type(self).__name__, self._value))

    def __repr__(self):
        return f"{type(self).__name__}({self._value!r})"


class Temp(_Measurement):
    """Temperature, stored in Fahrenheit.

    Example:
        >>> Temp(212).get(TempUnits.CELSIUS)
        100.0
    """

    __slots__ = ()

    def get(self, unit: int) -> float:
        unit = _coerce_unit(TempUnits, unit, "Temperature")
        if unit == TempUnits.FAHRENHEIT:
            return self._value
        return (self._value - 32.0) / 1.8

    def display(self, prefs: "Preferences") -> str:
        return f"{round_half_up(self.get(prefs.get_temp_unit()))}°"


# Upper end of each Beaufort number in mph
_BEAUFORT_MAXES = (1, 3, 7, 12, 18, 24, 31, 38, 46, 54, 63, 72)

_SPEED_FACTORS = {
    SpeedUnits.MPH: 1.0,
    SpeedUnits.MPS: 0.44704,
    SpeedUnits.KPH: 1.609344,
    SpeedUnits.KN: 0.868976,
    SpeedUnits.FPS: 1.466667,
}

_SPEED_SUFFIXES = {
    SpeedUnits.MPH: "mph",
    SpeedUnits.MPS: "m/s",
    SpeedUnits.KPH: "km/h",
    SpeedUnits.KN: "kts",
    SpeedUnits.FPS: "ft/s",
    SpeedUnits.BEAUFORT: "bft",
}


class Speed(_Measurement):
    """Speed, stored in miles per hour.

    Example:
        >>> Speed(1).get(SpeedUnits.BEAUFORT), Speed(1.1).get(SpeedUnits.BEAUFORT)
        (0, 1)
    """

    __slots__ = ()

    def get(self, unit: int) -> float:
        unit = _coerce_unit(SpeedUnits, unit, "Speed")
        if unit == SpeedUnits.BEAUFORT:
            for number, upper in enumerate(_BEAUFORT_MAXES):
                if self._value <= upper:
                    return number
            # Anything above 72 mph is hurricane force
            return 12
        return self._value * _SPEED_FACTORS[unit]

    def display(self, prefs: "Preferences") -> str:
        unit = _coerce_unit(SpeedUnits, prefs.get_speed_unit(), "Speed")
        return f"{round_half_up(self.get(unit))} {_SPEED_SUFFIXES[unit]}"


_COMPASS_POINTS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW", "N")


class Direction(_Measurement):
    """Compass direction, stored in degrees normalised to [0, 360).

    Example:
        >>> Direction(-10).get(DirectionUnits.DEGREES)
        350.0
        >>> Direction(315 + 30).get(DirectionUnits.EIGHT_POINT)
        'N'
    """

    __slots__ = ()

    def __init__(self, degrees: float):
        super().__init__(float(degrees) % 360.0)

    def get(self, unit: int) -> float | str:
        unit = _coerce_unit(DirectionUnits, unit, "Direction")
        if unit == DirectionUnits.DEGREES:
            return self._value
        # Values just under 360 round up to the second N
        return _(_COMPASS_POINTS[round_half_up(self._value / 45.0)])

    def display(self, prefs: "Preferences") -> str:
        unit = _coerce_unit(DirectionUnits, prefs.get_direction_unit(), "Direction")
        value = self.get(unit)
        if unit == DirectionUnits.DEGREES:
            return f"{round_half_up(value)}°"
        return value


_PRESSURE_FACTORS = {
    PressureUnits.IN_HG: 1.0,
    PressureUnits.HPA: 33.86389,
    PressureUnits.MM_HG: 25.4,
}

_PRESSURE_SUFFIXES = {
    PressureUnits.IN_HG: "inHg",
    PressureUnits.HPA: "hPa",
    PressureUnits.MM_HG: "mmHg",
}


class Pressure(_Measurement):
    """Atmospheric pressure, stored in inches of mercury."""

    __slots__ = ()

    def get(self, unit: int) -> float:
        unit = _coerce_unit(PressureUnits, unit, "Pressure")
        return self._value * _PRESSURE_FACTORS[unit]

    def display(self, prefs: "Preferences") -> str:
        unit = _coerce_unit(PressureUnits, prefs.get_pressure_unit(), "Pressure")
        return f"{round_half_up(self.get(unit))} {_PRESSURE_SUFFIXES[unit]}"


_RAIN_FACTORS = {
    RainMeasurementUnits.IN: 1.0,
    RainMeasurementUnits.MM: 25.4,
    RainMeasurementUnits.CM: 2.54,
    RainMeasurementUnits.PT: 0.01,
}

_RAIN_SUFFIXES = {
    RainMeasurementUnits.IN: '"',
    RainMeasurementUnits.MM: " mm",
    RainMeasurementUnits.CM: " cm",
    RainMeasurementUnits.PT: " pts",
}


class RainMeasurement(_Measurement):
    """Rainfall, stored in inches.

    Example:
        >>> RainMeasurement(1).get(RainMeasurementUnits.MM)
        25.4
    """

    __slots__ = ()

    def get(self, unit: int) -> float:
        unit = _coerce_unit(RainMeasurementUnits, unit, "Rain measurement")
        return self._value * _RAIN_FACTORS[unit]

    def display(self, prefs: "Preferences") -> str:
        unit = _coerce_unit(
            RainMeasurementUnits, prefs.get_rain_measurement_unit(), "Rain measurement"
        )
        value = self.get(unit)
        if unit in (RainMeasurementUnits.IN, RainMeasurementUnits.PT):
            text = format_decimal(value)
        else:
            text = str(round_half_up(value))
        return f"{text}{_RAIN_SUFFIXES[unit]}"


_DISTANCE_FACTORS = {
    DistanceUnits.MI: 1.0,
    DistanceUnits.KM: 1.609344,
    DistanceUnits.FT: 5280.0,
    DistanceUnits.M: 1609.344,
}

_DISTANCE_SUFFIXES = {
    DistanceUnits.MI: "mi",
    DistanceUnits.KM: "km",
    DistanceUnits.FT: "ft",
    DistanceUnits.M: "m",
}


class Distance(_Measurement):
    """Distance, stored in miles."""

    __slots__ = ()

    def get(self, unit: int) -> float:
        unit = _coerce_unit(DistanceUnits, unit, "Distance")
        return self._value * _DISTANCE_FACTORS[unit]

    def display(self, prefs: "Preferences") -> str:
        unit = _coerce_unit(DistanceUnits, prefs.get_distance_unit(), "Distance")
        return f"{round_half_up(self.get(unit))} {_DISTANCE_SUFFIXES[unit]}"


class Percentage(_Measurement):
    """A 0-100 percentage such as humidity or cloud cover."""

    __slots__ = ()

    def get(self) -> float:
        return self._value

    def display(self, prefs: "Preferences") -> str:
        return f"{round_half_up(self._value)}%"


class UvIndex(_Measurement):
    __slots__ = ()

    def get(self) -> float:
        return self._value

    def display(self, prefs: "Preferences") -> str:
        return str(round_half_up(self._value))


class SpeedAndDir:
    """Wind speed paired with its direction, displayed as "NE, 10 mph"."""

    __slots__ = ("speed", "direction")

    def __init__(self, speed: Speed, direction: Direction):
        object.__setattr__(self, "speed", speed)
        object.__setattr__(self, "direction", direction)

    def __setattr__(self, name, value):
        raise AttributeError("SpeedAndDir is immutable")

    def display(self, prefs: "Preferences") -> str:
        return f"{self.direction.display(prefs)}, {self.speed.display(prefs)}"


class TimeOfDay:
    """A timestamp displayed as a clock time."""

    __slots__ = ("moment",)

    def __init__(self, moment: datetime):
        object.__setattr__(self, "moment", moment)

    def __setattr__(self, name, value):
        raise AttributeError("TimeOfDay is immutable")

    def display(self, prefs: "Preferences") -> str:
        return display_time(self.moment, prefs)


class Text:
    """A translatable string key."""

    __slots__ = ("key",)

    def __init__(self, key: str):
        object.__setattr__(self, "key", key)

    def __setattr__(self, name, value):
        raise AttributeError("Text is immutable")

    def display(self, prefs: "Preferences") -> str:
        return _(self.key)
