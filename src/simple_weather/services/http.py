"""Thin async HTTP/JSON transport shared by every upstream service."""

import socket
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from ..core.config import settings
from ..core.errors import TransportError, TransportErrorKind

GENERIC_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.10 Safari/605.1.1"
)

TRACKED_USER_AGENT = "simple-weather/0.1.0"

# Messages the system resolver produces on glibc, macOS and Windows
RESOLVER_MESSAGES = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "getaddrinfo",
)


@dataclass(frozen=True)
class JsonResponse:
    """A decoded JSON response. Non-2xx statuses are returned, not raised."""

    status: int
    body: Any

    @property
    def is_2xx(self) -> bool:
        return self.status // 100 == 2


def _is_resolver_failure(exc: BaseException) -> bool:
    """Tell DNS/name-resolution failures apart from other connect errors.

    Example:
        >>> _is_resolver_failure(httpx.ConnectError("[Errno -2] Name or service not known"))
        True
        >>> _is_resolver_failure(httpx.ConnectError("Connection refused"))
        False
        >>> _is_resolver_failure(httpx.ConnectError("[SSL] Hostname mismatch"))
        False
    """
    seen = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        error_msg = str(current).lower()
        if any(message in error_msg for message in RESOLVER_MESSAGES):
            return True
        current = current.__cause__ or current.__context__
    return False


class JsonClient:
    """Async client issuing GET requests and decoding JSON bodies.

    Keeps two sessions: one with a generic browser user agent, and one that
    identifies the project for services whose usage policy asks for it.

    Example:
        >>> async def example():
        ...     async with JsonClient() as client:
        ...         response = await client.fetch_json("https://ipinfo.io/json", {})
        ...         return response.is_2xx
    """

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT
        self._generic: httpx.AsyncClient | None = None
        self._tracked: httpx.AsyncClient | None = None

    def setup(self) -> None:
        if self._generic is not None:
            return
        self._generic = self._make_client(GENERIC_USER_AGENT)
        self._tracked = self._make_client(TRACKED_USER_AGENT)

    def _make_client(self, user_agent: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=True,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )

    async def aclose(self) -> None:
        for client in (self._generic, self._tracked):
            if client is not None:
                await client.aclose()
        self._generic = None
        self._tracked = None

    async def __aenter__(self):
        """Async context manager entry."""
        self.setup()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()

    async def fetch_json(
        self,
        url: str,
        params: dict[str, str | int | float],
        use_tracked_agent: bool = False,
    ) -> JsonResponse:
        """GET ``url`` with query ``params`` and decode the JSON body.

        Args:
            url: Endpoint URL without query string
            params: Query parameters
            use_tracked_agent: Send the project's own user agent

        Returns:
            The status code and decoded body

        Raises:
            TransportError: When no usable JSON body was received; ``kind``
                classifies the failure (RESOLVER for DNS failures)
        """
        client = self._tracked if use_tracked_agent else self._generic
        if client is None:
            raise RuntimeError("Client not initialized. Call setup() or use async context manager.")

        try:
            response = await client.get(url, params=params)

        except httpx.TimeoutException as e:
            logger.warning("Request timed out", url=url)
            raise TransportError(TransportErrorKind.TIMEOUT, f"Request to {url} timed out") from e

        except httpx.ConnectError as e:
            # ConnectError covers both DNS resolution failures and refused connections
            if _is_resolver_failure(e):
                logger.warning("DNS resolution failed", url=url, error=str(e))
                raise TransportError(
                    TransportErrorKind.RESOLVER, f"Failed to resolve host for {url}"
                ) from e
            logger.warning("Failed to connect", url=url, error=str(e))
            raise TransportError(TransportErrorKind.CONNECT, f"Failed to connect to {url}") from e

        except httpx.HTTPError as e:
            logger.error("HTTP error occurred", url=url, error=str(e))
            raise TransportError(TransportErrorKind.OTHER, f"Network error: {e}") from e

        if not response.content:
            raise TransportError(
                TransportErrorKind.EMPTY,
                f"Server response was empty. Status: {response.status_code}",
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                TransportErrorKind.DECODE,
                "Couldn't parse body JSON. "
                f"User-Agent: {client.headers.get('User-Agent')}, "
                f"Status: {response.status_code}, Text: {response.text[:200]!r}",
            ) from e

        return JsonResponse(status=response.status_code, body=body)
