"""Localisation and display helpers shared by the measurement types."""

import gettext
import math
from datetime import date, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.preferences import Preferences

_translation = gettext.translation("simple-weather", fallback=True)


def _(message: str) -> str:
    """Translate a user-visible string."""
    return _translation.gettext(message)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity.

    Python's ``round`` uses banker's rounding, which would make 22.5 degrees
    read as north and 0.5 mph as zero.

    Example:
        >>> round_half_up(0.5), round_half_up(2.5), round_half_up(-2.5)
        (1, 3, -2)
    """
    return math.floor(value + 0.5)


def format_decimal(value: float) -> str:
    """Format with one decimal place, or none when the value is whole.

    Example:
        >>> format_decimal(3.0), format_decimal(0.34)
        ('3', '0.3')
    """
    if value % 1 == 0:
        return f"{value:.0f}"
    return f"{value:.1f}"


def display_time(moment: datetime, prefs: "Preferences", show_am_pm: bool = True) -> str:
    """Render a clock time using the user's 12/24 hour preference.

    Example:
        >>> class P:
        ...     def is_24_hour_clock(self): return False
        >>> display_time(datetime(2025, 1, 1, 18, 5), P())
        '6:05 PM'
        >>> display_time(datetime(2025, 1, 1, 18, 5), P(), show_am_pm=False)
        '6:05'
    """
    if prefs.is_24_hour_clock():
        return f"{moment.hour:02d}:{moment.minute:02d}"

    hour = moment.hour % 12 or 12
    text = f"{hour}:{moment.minute:02d}"
    if show_am_pm:
        text += " AM" if moment.hour < 12 else " PM"
    return text


_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def display_day_of_week(moment: datetime, use_today: bool = False, today: date | None = None) -> str:
    """Return the translated weekday name, or "Today" when asked and applicable."""
    if use_today and moment.date() == (today or date.today()):
        return _("Today")
    return _(_WEEKDAYS[moment.weekday()])
