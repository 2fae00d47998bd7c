"""Tests for the Location entity."""

import pytest

from simple_weather.core.errors import UserInputError
from simple_weather.models.location import Location, LocationFix

from conftest import FakeResolver


class TestLocationSerialization:
    """Test the persisted JSON form."""

    def test_round_trip_coords(self):
        """Test that a fixed location survives serialization."""
        loc = Location.new_coords("Berlin", 52.52, 13.41)
        assert Location.parse(loc.to_string()) == loc

    def test_round_trip_here(self):
        """Test that "here" survives with and without a name."""
        for loc in (Location.new_here(), Location.new_here("Home")):
            parsed = Location.parse(loc.to_string())
            assert parsed == loc
            assert parsed.is_here()

    def test_here_omits_coordinates(self):
        assert Location.new_here().to_string() == '{"isHere": true}'

    def test_empty_name_becomes_none(self):
        assert Location.new_here("").get_raw_name() is None

    @pytest.mark.parametrize(
        "serialized",
        [
            "not json",
            "[]",
            "null",
            '{"name": "X", "lat": 1}',
            '{"name": "X", "lon": 1}',
            '{"name": "X"}',
            '{"lat": 1, "lon": 2}',
            '{"name": 5, "lat": 1, "lon": 2}',
            '{"name": "X", "lat": "1", "lon": 2}',
            '{"name": "X", "lat": true, "lon": 2}',
            '{"isHere": "yes"}',
        ],
    )
    def test_parse_rejects_malformed(self, serialized):
        """Test that parse returns None instead of raising."""
        assert Location.parse(serialized) is None


class TestLocationFromUserInput:
    """Test building locations from the edit form."""

    def test_here(self):
        loc = Location.from_user_input("", "here")
        assert loc.is_here()
        assert loc.get_name() == "My Location"

    @pytest.mark.parametrize("coords", ["40.7 -73.97", "40.7,-73.97", " 40.7 , -73.97 "])
    def test_coordinate_formats(self, coords):
        loc = Location.from_user_input("New York", coords)
        assert (loc.lat, loc.lon) == (40.7, -73.97)
        assert not loc.is_here()

    @pytest.mark.parametrize(
        "name, coords",
        [
            ("", "40.7 -73.97"),
            ("X", "north"),
            ("X", "40.7"),
            ("X", "91 0"),
            ("X", "0 181"),
        ],
    )
    def test_rejects_bad_input(self, name, coords):
        with pytest.raises(UserInputError):
            Location.from_user_input(name, coords)


class TestLocationAccessors:
    """Test naming and coordinate helpers."""

    def test_coords_string(self):
        loc = Location.new_coords("New York", 40.7, -73.97)
        assert loc.get_coords_string() == "40.7 N 73.97 W"
        assert loc.get_description() == "40.7 N 73.97 W"

    def test_here_description(self):
        assert Location.new_here().get_description() == "My Location"

    @pytest.mark.asyncio
    async def test_lat_lon_fixed_skips_resolver(self):
        """Test that a fixed location never asks the resolver."""
        resolver = FakeResolver()
        fix = await Location.new_coords("Berlin", 52.52, 13.41).lat_lon(resolver)

        assert (fix.lat, fix.lon) == (52.52, 13.41)
        assert resolver.calls == 0

    @pytest.mark.asyncio
    async def test_lat_lon_here_uses_resolver(self):
        resolver = FakeResolver(LocationFix(lat=1.5, lon=2.5))
        fix = await Location.new_here().lat_lon(resolver)

        assert (fix.lat, fix.lon) == (1.5, 2.5)
        assert resolver.calls == 1
