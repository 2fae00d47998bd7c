"""Tests for the JSON HTTP client."""

import socket

import httpx
import pytest
from pytest_httpx import HTTPXMock

from simple_weather.core.errors import TransportError, TransportErrorKind
from simple_weather.services.http import GENERIC_USER_AGENT, TRACKED_USER_AGENT, JsonClient

URL = "https://example.test/data"


class TestJsonClient:
    """Test fetch_json and its failure classification."""

    @pytest.mark.asyncio
    async def test_success(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(url=f"{URL}?a=1", json={"ok": True})

        async with JsonClient() as client:
            response = await client.fetch_json(URL, {"a": 1})

        assert response.status == 200
        assert response.is_2xx
        assert response.body == {"ok": True}

    @pytest.mark.asyncio
    async def test_non_2xx_is_returned(self, httpx_mock: HTTPXMock):
        """Test that error statuses come back as responses, not exceptions."""
        httpx_mock.add_response(status_code=400, json={"error": True, "reason": "bad"})

        async with JsonClient() as client:
            response = await client.fetch_json(URL, {})

        assert response.status == 400
        assert not response.is_2xx
        assert response.body["reason"] == "bad"

    @pytest.mark.asyncio
    async def test_user_agents(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(json={})
        httpx_mock.add_response(json={})

        async with JsonClient() as client:
            await client.fetch_json(URL, {})
            await client.fetch_json(URL, {}, use_tracked_agent=True)

        generic, tracked = httpx_mock.get_requests()
        assert generic.headers["User-Agent"] == GENERIC_USER_AGENT
        assert tracked.headers["User-Agent"] == TRACKED_USER_AGENT

    @pytest.mark.asyncio
    async def test_timeout(self, httpx_mock: HTTPXMock):
        httpx_mock.add_exception(httpx.ReadTimeout("Request timeout"))

        async with JsonClient() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_json(URL, {})

        assert exc_info.value.kind is TransportErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_dns_failure(self, httpx_mock: HTTPXMock):
        """Test that name resolution failures are tagged RESOLVER."""
        error = httpx.ConnectError("[Errno -3] Temporary failure in name resolution")
        httpx_mock.add_exception(error)

        async with JsonClient() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_json(URL, {})

        assert exc_info.value.kind is TransportErrorKind.RESOLVER

    @pytest.mark.asyncio
    async def test_dns_failure_in_cause_chain(self, httpx_mock: HTTPXMock):
        error = httpx.ConnectError("connection failed")
        error.__cause__ = socket.gaierror(-2, "unknown host")
        httpx_mock.add_exception(error)

        async with JsonClient() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_json(URL, {})

        assert exc_info.value.kind is TransportErrorKind.RESOLVER

    @pytest.mark.asyncio
    async def test_tls_hostname_mismatch_is_not_dns(self, httpx_mock: HTTPXMock):
        """Test that certificate errors mentioning a hostname are plain connect errors."""
        httpx_mock.add_exception(
            httpx.ConnectError(
                "[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed: "
                "Hostname mismatch, certificate is not valid for 'api.open-meteo.com'"
            )
        )

        async with JsonClient() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_json(URL, {})

        assert exc_info.value.kind is TransportErrorKind.CONNECT

    @pytest.mark.asyncio
    async def test_connection_refused(self, httpx_mock: HTTPXMock):
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        async with JsonClient() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_json(URL, {})

        assert exc_info.value.kind is TransportErrorKind.CONNECT

    @pytest.mark.asyncio
    async def test_empty_body(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(status_code=204)

        async with JsonClient() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_json(URL, {})

        assert exc_info.value.kind is TransportErrorKind.EMPTY

    @pytest.mark.asyncio
    async def test_invalid_json(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(text="<html>rate limited</html>")

        async with JsonClient() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_json(URL, {})

        assert exc_info.value.kind is TransportErrorKind.DECODE

    @pytest.mark.asyncio
    async def test_requires_setup(self):
        client = JsonClient()
        with pytest.raises(RuntimeError, match="not initialized"):
            await client.fetch_json(URL, {})
