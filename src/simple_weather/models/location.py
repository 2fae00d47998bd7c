"""Location entity: a named coordinate pair or the "here" sentinel."""

import json
import re
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import UserInputError
from .lang import _

if TYPE_CHECKING:
    from ..services.my_location import MyLocationResolver


class LocationFix(BaseModel):
    """Resolved coordinates, optionally with the city and ISO country code.

    Example:
        >>> fix = LocationFix(lat=40.7, lon=-74.0, city="New York", country="US")
        >>> fix.city
        'New York'
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude in decimal degrees")
    lon: float = Field(..., ge=-180.0, le=180.0, description="Longitude in decimal degrees")
    city: str | None = Field(default=None, description="City or town name")
    country: str | None = Field(default=None, description="Upper-case ISO country code")


# "lat lon" or "lat,lon", both signed decimals
_COORDS_RE = re.compile(r"^\s*(-?\d+(?:\.\d*)?)\s*[,\s]\s*(-?\d+(?:\.\d*)?)\s*$")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Location:
    """Either the user's current location ("here") or a fixed named coordinate.

    Build instances through ``new_here``, ``new_coords``, ``parse`` or
    ``from_user_input``.

    Example:
        >>> loc = Location.new_coords("Berlin", 52.52, 13.41)
        >>> Location.parse(loc.to_string()) == loc
        True
    """

    __slots__ = ("_name", "_is_here", "_lat", "_lon")

    def __init__(self, name: str | None = None, is_here: bool = False,
                 lat: float | None = None, lon: float | None = None):
        self._name = name
        self._is_here = is_here
        self._lat = lat
        self._lon = lon

    @classmethod
    def new_coords(cls, name: str, lat: float, lon: float) -> "Location":
        return cls(name, False, lat, lon)

    @classmethod
    def new_here(cls, name: str | None = None) -> "Location":
        return cls(name or None, True)

    @classmethod
    def parse(cls, serialized: str) -> "Location | None":
        """Parse the persisted form, returning None for anything malformed.

        Example:
            >>> Location.parse('{"isHere": true}').is_here()
            True
            >>> Location.parse('{"name": "X", "lat": 1}') is None
            True
        """
        try:
            obj = json.loads(serialized)
        except (TypeError, ValueError):
            return None
        if not isinstance(obj, dict):
            return None

        name = obj.get("name")
        is_here = obj.get("isHere")
        has_lat = "lat" in obj and obj["lat"] is not None
        has_lon = "lon" in obj and obj["lon"] is not None

        if name is not None and not isinstance(name, str):
            return None
        # Only "here" may omit the name
        if not is_here and not name:
            return None
        if is_here is not None and not isinstance(is_here, bool):
            return None
        if has_lat and not _is_number(obj["lat"]):
            return None
        if has_lon and not _is_number(obj["lon"]):
            return None
        # Either both coordinates or neither
        if has_lat != has_lon:
            return None
        # A fixed location needs coordinates
        if not is_here and not has_lat:
            return None

        return cls(
            name or None,
            bool(is_here),
            float(obj["lat"]) if has_lat else None,
            float(obj["lon"]) if has_lon else None,
        )

    @classmethod
    def from_user_input(cls, name: str, coords_text: str) -> "Location":
        """Build a location from what the user typed into the edit form.

        ``coords_text`` is either ``here`` or ``"lat lon"`` / ``"lat,lon"``.

        Raises:
            UserInputError: If the name is missing or the coordinates are malformed
        """
        name = (name or "").strip()
        text = (coords_text or "").strip()

        if text.lower() == "here":
            return cls.new_here(name or None)

        if not name:
            raise UserInputError(_("A name is required for a fixed location."))

        match = _COORDS_RE.match(text)
        if not match:
            raise UserInputError(_("Coordinates must look like \"40.7 -73.97\"."))

        lat, lon = float(match.group(1)), float(match.group(2))
        if not -90.0 <= lat <= 90.0:
            raise UserInputError(_("Latitude must be between -90 and 90."))
        if not -180.0 <= lon <= 180.0:
            raise UserInputError(_("Longitude must be between -180 and 180."))
        return cls.new_coords(name, lat, lon)

    def to_string(self) -> str:
        obj: dict = {}
        if self._name is not None:
            obj["name"] = self._name
        if self._is_here:
            obj["isHere"] = True
        if self._lat is not None and self._lon is not None:
            obj["lat"] = self._lat
            obj["lon"] = self._lon
        return json.dumps(obj)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Location({self.to_string()})"

    def __eq__(self, other):
        if not isinstance(other, Location):
            return NotImplemented
        return (self._name, self._is_here, self._lat, self._lon) == (
            other._name, other._is_here, other._lat, other._lon
        )

    def __hash__(self):
        return hash((self._name, self._is_here, self._lat, self._lon))

    def is_here(self) -> bool:
        return self._is_here

    @property
    def lat(self) -> float | None:
        return self._lat

    @property
    def lon(self) -> float | None:
        return self._lon

    def get_name(self) -> str:
        return self._name if self._name else _("My Location")

    def get_raw_name(self) -> str | None:
        return self._name

    def get_description(self) -> str:
        return _("My Location") if self._is_here else self.get_coords_string()

    def get_coords_string(self) -> str:
        """Human readable coordinates, e.g. ``40.7 N 73.97 W``."""
        if self._lat is None or self._lon is None:
            return ""
        lat = f"{abs(self._lat):g} {_('N') if self._lat >= 0 else _('S')}"
        lon = f"{abs(self._lon):g} {_('E') if self._lon >= 0 else _('W')}"
        return f"{lat} {lon}"

    async def lat_lon(self, resolver: "MyLocationResolver | None") -> LocationFix:
        """Resolve to coordinates, asking the resolver only for "here"."""
        if self._is_here:
            if resolver is None:
                raise RuntimeError("Resolving the current location requires a resolver")
            return await resolver.get()
        return LocationFix(lat=self._lat, lon=self._lon, city=self._name)
