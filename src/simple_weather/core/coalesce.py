"""Request coalescing (single-flight) for async operations."""

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

from loguru import logger


class CoalesceLimitError(RuntimeError):
    """Raised when too many callers are already waiting on one in-flight request."""

    pass


class RequestCoalescer:
    """Implements request coalescing to prevent duplicate upstream calls.

    When several callers ask for the same key while a fetch for that key is
    in flight, only the first one runs ``fetch_func``; the others await its
    outcome (result or exception). Once the fetch settles the key is free
    again and the next call starts a fresh fetch.

    Waiters per key are capped to keep memory bounded.

    Example:
        >>> coalescer = RequestCoalescer()
        >>> coalescer.in_flight("my-location")
        False
    """

    def __init__(self, max_waiters: int = 100):
        """Initialize request coalescer.

        Args:
            max_waiters: Maximum concurrent waiters per key
        """
        self._futures: dict[Hashable, asyncio.Future] = {}
        self._waiter_counts: dict[Hashable, int] = defaultdict(int)
        self._max_waiters = max_waiters

    def in_flight(self, key: Hashable) -> bool:
        """Return True while a fetch for ``key`` is outstanding."""
        return key in self._futures

    async def coalesce(
        self,
        key: Hashable,
        fetch_func: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run ``fetch_func`` once per key, sharing its outcome with concurrent callers.

        Args:
            key: Identity of the request being coalesced
            fetch_func: Async function performing the real work

        Returns:
            Whatever ``fetch_func`` returned

        Raises:
            CoalesceLimitError: If too many callers already wait on this key
            Exception: Whatever ``fetch_func`` raised, re-raised to every caller
        """
        future = self._futures.get(key)
        if future is not None:
            if self._waiter_counts[key] >= self._max_waiters:
                logger.warning(
                    "Request coalescing limit exceeded",
                    key=str(key),
                    waiters=self._waiter_counts[key],
                    max_waiters=self._max_waiters,
                )
                raise CoalesceLimitError("Too many concurrent requests")

            self._waiter_counts[key] += 1
            logger.debug(
                "Request coalescing - waiting for existing fetch",
                key=str(key),
                waiters=self._waiter_counts[key],
            )
            try:
                # Shield so a cancelled waiter does not cancel the shared fetch
                return await asyncio.shield(future)
            finally:
                self._waiter_counts[key] -= 1
                if self._waiter_counts[key] <= 0:
                    self._waiter_counts.pop(key, None)

        future = asyncio.get_running_loop().create_future()
        self._futures[key] = future
        try:
            logger.debug("Request coalescing - running fetch", key=str(key))
            result = await fetch_func()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unawaited failure does not warn at GC time
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._futures.pop(key, None)
