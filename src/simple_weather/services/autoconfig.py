"""First-run configuration guessed from the machine and its location."""

from pathlib import Path

from loguru import logger

from ..core.preferences import SettingsStore
from ..models.lang import _
from ..models.location import Location
from ..models.units import SpeedUnits, TempUnits
from .my_location import MyLocationResolver

CHASSIS_TYPE_PATH = Path("/sys/class/dmi/id/chassis_type")

# SMBIOS chassis type 3 is "Desktop"
DESKTOP_CHASSIS = "3"


def is_desktop(chassis_path: Path = CHASSIS_TYPE_PATH) -> bool:
    """Return True if this computer is a desktop, False if not or unknown."""
    try:
        return chassis_path.read_text(encoding="utf-8").strip() == DESKTOP_CHASSIS
    except OSError:
        return False


async def set_first_time_config(
    store: SettingsStore,
    resolver: MyLocationResolver,
    chassis_path: Path = CHASSIS_TYPE_PATH,
) -> None:
    """Pick locations and units for a fresh install.

    Desktops do not move, so their location is resolved once and pinned as a
    fixed coordinate location. Temperature and speed units follow the country.

    Raises:
        LocationResolutionError: If the current location cannot be resolved
    """
    fix = await resolver.get()
    values = {}

    if is_desktop(chassis_path):
        loc = Location.new_coords(fix.city or _("My Location"), fix.lat, fix.lon)
        values["locations"] = [loc.to_string()]

    if fix.country == "US":
        values["temp-unit"] = TempUnits.FAHRENHEIT
        values["speed-unit"] = SpeedUnits.MPH
    elif fix.country in ("UK", "GB"):
        values["temp-unit"] = TempUnits.CELSIUS
        values["speed-unit"] = SpeedUnits.MPH
    else:
        values["temp-unit"] = TempUnits.CELSIUS
        values["speed-unit"] = SpeedUnits.KPH

    store.set_many(values)
    logger.info(
        "First-time configuration applied",
        country=fix.country,
        pinned_location="locations" in values,
    )
