"""Tests for the page fetcher."""
import httpx
import pytest

from covidstats.errors import FetchError
from tests.helpers import SOURCE_URL, PageServer


@pytest.mark.asyncio
async def test_fetch_returns_body():
    server = PageServer("<html>ok</html>")
    async with server.factory()() as client:
        body = await client.fetch(SOURCE_URL)

    assert body == "<html>ok</html>"
    assert len(server.requests) == 1
    assert "covidstats-scraper" in server.requests[0].headers["user-agent"]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 500, 503])
async def test_error_status_raises(status):
    server = PageServer("nope", status=status)
    async with server.factory()() as client:
        with pytest.raises(FetchError) as excinfo:
            await client.fetch(SOURCE_URL)

    assert excinfo.value.details["status_code"] == status
    # No retry
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_timeout_raises_fetch_error():
    server = PageServer(error=httpx.ReadTimeout)
    async with server.factory()() as client:
        with pytest.raises(FetchError) as excinfo:
            await client.fetch(SOURCE_URL)

    assert "timed out" in excinfo.value.message
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_network_error_raises_fetch_error():
    server = PageServer(error=httpx.ConnectError)
    async with server.factory()() as client:
        with pytest.raises(FetchError) as excinfo:
            await client.fetch(SOURCE_URL)

    assert excinfo.value.category == "fetch_error"
