"""Fetch/retry orchestration: periodic refresh of the published weather snapshot."""

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

from loguru import logger
from opentelemetry import metrics
from tenacity import AsyncRetrying, retry_if_exception, wait_fixed

from ..core.coalesce import RequestCoalescer
from ..core.config import settings
from ..core.errors import (
    LocationResolutionError,
    TransportError,
    TransportErrorKind,
    WeatherProviderError,
)
from ..core.preferences import Preferences
from ..models.weather import Weather
from .http import JsonClient
from .my_location import MyLocationResolver
from .provider import Provider, create_provider

WeatherListener = Callable[[Weather], None]
ProviderFactory = Callable[[Preferences, JsonClient, MyLocationResolver], Provider]

meter = metrics.get_meter("simple_weather.updater")
fetch_counter = meter.create_counter(
    "weather_fetches",
    unit="1",
    description="Weather fetch cycles by outcome",
)


def is_resolver_error(exc: BaseException) -> bool:
    """Return True for DNS failures, including ones wrapped by location resolution.

    Example:
        >>> is_resolver_error(TransportError(TransportErrorKind.RESOLVER, "no such host"))
        True
        >>> is_resolver_error(TransportError(TransportErrorKind.TIMEOUT, "timed out"))
        False
    """
    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, TransportError):
            return current.kind is TransportErrorKind.RESOLVER
        current = current.__cause__
    return False


def next_tick(deadline: float, now: float, interval: float) -> float:
    """Return the first tick on the fixed grid after ``now``.

    Ticks a long cycle ran past are skipped, not fired in a burst.

    Example:
        >>> next_tick(0.0, 10.0, 900.0)
        900.0
        >>> next_tick(0.0, 950.0, 900.0)
        1800.0
    """
    deadline += interval
    if deadline <= now:
        deadline += ((now - deadline) // interval + 1) * interval
    return deadline


class WeatherUpdater:
    """Owns the provider, the refresh timer and the latest ``Weather``.

    ``refresh()`` is the only fetch path. Concurrent triggers (timer, manual
    refresh, preference changes) join the cycle already running. A cycle that
    fails on DNS resolution is retried after a fixed delay until the number
    of consecutive DNS failures exceeds the limit; after that it waits for the
    next tick. Any success resets the count.

    Example:
        >>> async def example(prefs, client, resolver):
        ...     updater = WeatherUpdater(prefs, client, resolver)
        ...     await updater.start()
        ...     weather = await updater.refresh()
        ...     await updater.stop()
        ...     return weather
    """

    _KEY = "weather"

    def __init__(
        self,
        prefs: Preferences,
        client: JsonClient,
        resolver: MyLocationResolver,
        provider_factory: ProviderFactory = create_provider,
        refresh_interval: float | None = None,
        retry_delay: float | None = None,
        retry_limit: int | None = None,
    ):
        self._prefs = prefs
        self._client = client
        self._resolver = resolver
        self._provider_factory = provider_factory
        self._refresh_interval = (
            settings.REFRESH_INTERVAL if refresh_interval is None else refresh_interval
        )
        self._retry_delay = settings.RESOLVER_RETRY_DELAY if retry_delay is None else retry_delay
        self._retry_limit = settings.RESOLVER_RETRY_LIMIT if retry_limit is None else retry_limit

        self._coalescer = RequestCoalescer(max_waiters=settings.REQUEST_COALESCE_LIMIT)
        self._provider: Provider | None = None
        self._weather: Weather | None = None
        self._resolver_failures = 0
        self._listeners: list[WeatherListener] = []
        self._handler_ids: list[int] = []
        self._timer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def weather(self) -> Weather | None:
        """The latest successful snapshot, or None before the first success."""
        return self._weather

    @property
    def provider(self) -> Provider:
        if self._provider is None:
            self._provider = self._provider_factory(self._prefs, self._client, self._resolver)
        return self._provider

    @property
    def resolver_failures(self) -> int:
        return self._resolver_failures

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def add_listener(self, callback: WeatherListener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: WeatherListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        if self._weather is None:
            return
        for callback in list(self._listeners):
            try:
                callback(self._weather)
            except Exception:
                logger.exception("Weather listener failed")

    async def start(self) -> None:
        """Subscribe to preference changes and start the periodic refresh.

        The first fetch runs immediately in the background.
        """
        if self.running:
            return
        self._provider = self._provider_factory(self._prefs, self._client, self._resolver)
        self._handler_ids = [
            self._prefs.on_main_location_changed(self._on_location_changed),
            self._prefs.on_my_location_provider_changed(self._on_location_changed),
            self._prefs.on_weather_provider_changed(self._on_provider_changed),
            self._prefs.on_any_unit_changed(self._notify),
            self._prefs.on_details_changed(self._notify),
        ]
        self._timer = asyncio.create_task(self._run_periodically())
        logger.info(
            "Weather updater started",
            provider=self.provider.name_key,
            refresh_interval=self._refresh_interval,
        )

    async def stop(self) -> None:
        for handler_id in self._handler_ids:
            self._prefs.disconnect(handler_id)
        self._handler_ids = []

        tasks = list(self._tasks)
        if self._timer is not None:
            tasks.append(self._timer)
            self._timer = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Weather updater stopped")

    async def _run_periodically(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            try:
                await self.refresh()
            except Exception:
                logger.exception("Periodic weather refresh failed")
            deadline = next_tick(deadline, loop.time(), self._refresh_interval)
            await asyncio.sleep(deadline - loop.time())

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.debug("No running event loop, skipping background refresh")
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _refresh_quietly(self) -> None:
        try:
            await self.refresh()
        except Exception:
            logger.exception("Background weather refresh failed")

    def trigger_refresh(self) -> None:
        """Schedule a refresh from synchronous code."""
        self._spawn(self._refresh_quietly())

    def _on_location_changed(self) -> None:
        logger.info("Location preferences changed, refreshing weather")
        self.trigger_refresh()

    def _on_provider_changed(self) -> None:
        self._provider = self._provider_factory(self._prefs, self._client, self._resolver)
        logger.info("Weather provider changed", provider=self._provider.name_key)
        self.trigger_refresh()

    async def refresh(self) -> Weather | None:
        """Run one fetch cycle, or join the one already in flight.

        Returns:
            The new snapshot, or None if the cycle failed

        Raises:
            CoalesceLimitError: If too many callers already wait on the cycle
        """
        return await self._coalescer.coalesce(self._KEY, self._run_cycle)

    def _should_retry(self, exc: BaseException) -> bool:
        if not is_resolver_error(exc):
            return False
        self._resolver_failures += 1
        retry = self._resolver_failures <= self._retry_limit
        logger.warning(
            "DNS resolution failed while fetching weather",
            failures=self._resolver_failures,
            limit=self._retry_limit,
            retrying=retry,
        )
        return retry

    async def _run_cycle(self) -> Weather | None:
        provider = self.provider
        retrying = AsyncRetrying(
            retry=retry_if_exception(self._should_retry),
            wait=wait_fixed(self._retry_delay),
            reraise=True,
        )

        try:
            weather = await retrying(provider.fetch_weather)
        except TransportError as e:
            fetch_counter.add(1, {"outcome": f"transport_{e.kind.value}"})
            logger.warning("Weather fetch failed", kind=e.kind.value, error=str(e))
            return None
        except LocationResolutionError as e:
            fetch_counter.add(1, {"outcome": "location_error"})
            logger.warning("Could not resolve location for weather", error=str(e))
            return None
        except WeatherProviderError as e:
            fetch_counter.add(1, {"outcome": "provider_error"})
            logger.warning(
                "Weather provider error",
                provider=provider.name_key,
                status_code=e.status_code,
                error=str(e),
            )
            return None
        except Exception:
            fetch_counter.add(1, {"outcome": "error"})
            logger.exception("Unexpected error while fetching weather")
            return None

        self._weather = weather
        self._resolver_failures = 0
        fetch_counter.add(1, {"outcome": "success"})
        logger.debug("Weather updated", provider=weather.provider_name)
        self._notify()
        return weather
