"""Tests for current-location resolution."""

import asyncio

import pytest
from pytest_httpx import HTTPXMock

from simple_weather.core.errors import (
    LocationResolutionError,
    NoLocationServiceError,
    TransportError,
    TransportErrorKind,
)
from simple_weather.core.preferences import MyLocationProvider
from simple_weather.models.location import LocationFix
from simple_weather.services.geocoding import NominatimClient
from simple_weather.services.http import JsonClient
from simple_weather.services.my_location import (
    DisabledLocator,
    IpApiLocator,
    IpInfoLocator,
    MyLocationResolver,
    SystemLocator,
    create_locator,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance_minutes(self, minutes: float) -> None:
        self.now += minutes * 60


class FakeLocator:
    name = "fake"

    def __init__(self, fix=None, error=None, gate: asyncio.Event | None = None):
        self.fix = fix or LocationFix(lat=40.7, lon=-73.97, city="New York", country="US")
        self.error = error
        self.gate = gate
        self.calls = 0

    async def resolve(self) -> LocationFix:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.fix


class FakeSystemService:
    def __init__(self, coords=(52.52, 13.41), error=None):
        self.coords = coords
        self.error = error

    async def get_coordinates(self):
        if self.error is not None:
            raise self.error
        return self.coords


def make_resolver(prefs, locator, clock=None):
    resolver = MyLocationResolver(
        prefs,
        JsonClient(),
        locator_factory=lambda kind: locator,
        clock=clock or FakeClock(),
    )
    resolver.setup()
    return resolver


class TestMyLocationResolver:
    """Test caching and single-flight behaviour."""

    @pytest.mark.asyncio
    async def test_concurrent_gets_call_provider_once(self, prefs):
        """Test that concurrent requests share one provider call."""
        gate = asyncio.Event()
        locator = FakeLocator(gate=gate)
        resolver = make_resolver(prefs, locator)

        tasks = [asyncio.create_task(resolver.get()) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        fixes = await asyncio.gather(*tasks)

        assert locator.calls == 1
        assert all(fix.city == "New York" for fix in fixes)

    @pytest.mark.asyncio
    async def test_cache_stays_fresh_for_refresh_minutes(self, prefs):
        locator = FakeLocator()
        clock = FakeClock()
        resolver = make_resolver(prefs, locator, clock)

        await resolver.get()
        clock.advance_minutes(9)
        await resolver.get()
        assert locator.calls == 1

        clock.advance_minutes(2)
        await resolver.get()
        assert locator.calls == 2

    @pytest.mark.asyncio
    async def test_refresh_minutes_floor_applies(self, store, prefs):
        """Test that a refresh setting below ten minutes is raised to ten."""
        store.set("my-loc-refresh-min", 1)
        locator = FakeLocator()
        clock = FakeClock()
        resolver = make_resolver(prefs, locator, clock)

        await resolver.get()
        clock.advance_minutes(5)
        await resolver.get()

        assert locator.calls == 1

    @pytest.mark.asyncio
    async def test_returns_copy(self, prefs):
        resolver = make_resolver(prefs, FakeLocator())

        first = await resolver.get()
        second = await resolver.get()

        assert first == second
        assert first is not resolver.cached

    @pytest.mark.asyncio
    async def test_failure_wrapped_and_stamped(self, prefs):
        """Test that generic failures become LocationResolutionError."""
        clock = FakeClock()
        locator = FakeLocator(error=TransportError(TransportErrorKind.TIMEOUT, "slow"))
        resolver = make_resolver(prefs, locator, clock)

        with pytest.raises(LocationResolutionError) as exc_info:
            await resolver.get()

        assert isinstance(exc_info.value.__cause__, TransportError)
        assert resolver.cached is None
        assert resolver._last_fetched == clock.now

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_fix(self, prefs):
        """Test that a failed lookup leaves the previous fix to be served for an interval."""
        clock = FakeClock()
        locator = FakeLocator()
        resolver = make_resolver(prefs, locator, clock)
        fix = await resolver.get()

        clock.advance_minutes(11)
        locator.error = LocationResolutionError("down")
        with pytest.raises(LocationResolutionError):
            await resolver.get()

        assert resolver.cached == fix
        assert await resolver.get() == fix
        assert locator.calls == 2

        clock.advance_minutes(11)
        with pytest.raises(LocationResolutionError):
            await resolver.get()
        assert locator.calls == 3

    @pytest.mark.asyncio
    async def test_failure_without_fix_looks_up_again(self, prefs):
        locator = FakeLocator(error=LocationResolutionError("down"))
        resolver = make_resolver(prefs, locator)

        for _ in range(2):
            with pytest.raises(LocationResolutionError):
                await resolver.get()

        assert locator.calls == 2

    @pytest.mark.asyncio
    async def test_no_location_service_reraised(self, prefs):
        locator = FakeLocator(error=NoLocationServiceError())
        resolver = make_resolver(prefs, locator)

        with pytest.raises(NoLocationServiceError):
            await resolver.get()

    @pytest.mark.asyncio
    async def test_provider_change_clears_cache(self, store, prefs):
        """Test that switching provider forces a new lookup."""
        created = []

        def factory(kind):
            locator = FakeLocator()
            created.append((kind, locator))
            return locator

        resolver = MyLocationResolver(prefs, JsonClient(), locator_factory=factory, clock=FakeClock())
        resolver.setup()
        await resolver.get()

        store.set("my-loc-provider", MyLocationProvider.IPAPI)
        assert resolver.cached is None

        await resolver.get()
        assert [kind for kind, _ in created] == [MyLocationProvider.IPINFO, MyLocationProvider.IPAPI]
        assert created[1][1].calls == 1

    @pytest.mark.asyncio
    async def test_provider_change_during_lookup_discards_old_fix(self, store, prefs):
        """Test that a lookup finishing after a provider switch does not fill the cache."""
        gate = asyncio.Event()
        old = FakeLocator(fix=LocationFix(lat=1.0, lon=1.0), gate=gate)
        new = FakeLocator(fix=LocationFix(lat=50.0, lon=14.0))
        locators = {MyLocationProvider.IPINFO: old, MyLocationProvider.IPAPI: new}
        resolver = MyLocationResolver(
            prefs, JsonClient(), locator_factory=locators.__getitem__, clock=FakeClock()
        )
        resolver.setup()

        pending = asyncio.create_task(resolver.get())
        await asyncio.sleep(0)
        assert old.calls == 1
        store.set("my-loc-provider", MyLocationProvider.IPAPI)
        gate.set()

        assert (await pending).lat == 1.0
        assert resolver.cached is None

        fix = await resolver.get()
        assert fix.lat == 50.0
        assert new.calls == 1

    def test_teardown_disconnects(self, store, prefs):
        factory_calls = []
        resolver = MyLocationResolver(
            prefs, JsonClient(), locator_factory=lambda kind: factory_calls.append(kind) or FakeLocator()
        )
        resolver.setup()
        resolver.teardown()

        store.set("my-loc-provider", MyLocationProvider.IPAPI)

        assert len(factory_calls) == 1


class TestLocators:
    """Test the individual providers."""

    @pytest.mark.asyncio
    async def test_ipinfo(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            url="https://ipinfo.io/json",
            json={"ip": "1.2.3.4", "loc": "40.7143,-74.0060", "city": "New York", "country": "US"},
        )

        async with JsonClient() as client:
            fix = await IpInfoLocator(client).resolve()

        assert fix == LocationFix(lat=40.7143, lon=-74.006, city="New York", country="US")

    @pytest.mark.asyncio
    async def test_ipinfo_bad_loc(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(json={"loc": "nowhere"})

        async with JsonClient() as client:
            with pytest.raises(LocationResolutionError):
                await IpInfoLocator(client).resolve()

    @pytest.mark.asyncio
    async def test_ipapi(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            url="https://ipapi.co/json/",
            json={"latitude": 51.5, "longitude": -0.12, "city": "London", "country_code": "GB"},
        )

        async with JsonClient() as client:
            fix = await IpApiLocator(client).resolve()

        assert (fix.lat, fix.lon, fix.city, fix.country) == (51.5, -0.12, "London", "GB")

    @pytest.mark.asyncio
    async def test_ipapi_error_flag(self, httpx_mock: HTTPXMock):
        """Test that ipapi's rate-limit body is treated as a failure."""
        httpx_mock.add_response(json={"error": True, "reason": "RateLimited"})

        async with JsonClient() as client:
            with pytest.raises(LocationResolutionError, match="RateLimited"):
                await IpApiLocator(client).resolve()

    @pytest.mark.asyncio
    async def test_system_without_service(self):
        locator = SystemLocator(None, NominatimClient(JsonClient()))
        with pytest.raises(NoLocationServiceError):
            await locator.resolve()

    @pytest.mark.asyncio
    async def test_system_access_denied(self):
        service = FakeSystemService(error=PermissionError("denied"))
        locator = SystemLocator(service, NominatimClient(JsonClient()))
        with pytest.raises(NoLocationServiceError):
            await locator.resolve()

    @pytest.mark.asyncio
    async def test_system_reverse_geocodes(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            json={"address": {"city": "Berlin", "country_code": "de"}},
        )

        async with JsonClient() as client:
            locator = SystemLocator(FakeSystemService(), NominatimClient(client))
            fix = await locator.resolve()

        assert (fix.lat, fix.lon, fix.city, fix.country) == (52.52, 13.41, "Berlin", "DE")

    @pytest.mark.asyncio
    async def test_system_tolerates_reverse_failure(self, httpx_mock: HTTPXMock):
        """Test that bare coordinates are returned when naming fails."""
        httpx_mock.add_response(status_code=500, json={"error": "down"})

        async with JsonClient() as client:
            locator = SystemLocator(FakeSystemService(), NominatimClient(client))
            fix = await locator.resolve()

        assert (fix.lat, fix.lon, fix.city) == (52.52, 13.41, None)

    @pytest.mark.asyncio
    async def test_disabled(self):
        with pytest.raises(LocationResolutionError):
            await DisabledLocator().resolve()

    def test_factory(self):
        client = JsonClient()
        assert isinstance(create_locator(MyLocationProvider.IPINFO, client), IpInfoLocator)
        assert isinstance(create_locator(MyLocationProvider.IPAPI, client), IpApiLocator)
        assert isinstance(create_locator(MyLocationProvider.SYSTEM, client), SystemLocator)
        assert isinstance(create_locator(MyLocationProvider.DISABLED, client), DisabledLocator)
