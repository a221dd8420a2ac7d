"""Tests for source clients (HTTP mocked with httpx.MockTransport)."""

import asyncio

import httpx
import pytest

from app.pricefeed.catalog import SOURCES, SOURCES_BY_KEY
from app.pricefeed.client import HttpSourceClient
from app.pricefeed.models import SourceDescriptor
from fakes import HANG, FakeSourceClient, canonical


def _client(handler, timeout: float = 1.0) -> HttpSourceClient:
    return HttpSourceClient(
        base_url="https://api.example.com",
        sources=SOURCES,
        timeout=timeout,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
class TestHttpSourceClient:
    """HttpSourceClient against a mocked HTTP transport."""

    async def test_fetch_normalizes_response(self):
        """A 200 JSON response becomes normalized records."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"data": [canonical("Barley", 5.45)]})

        client = _client(handler)
        result = await client.fetch(SOURCES_BY_KEY["USDA"])
        await client.aclose()

        assert result.ok
        assert [r.name for r in result.records] == ["Barley"]
        assert seen == ["https://api.example.com/usda/commodities"]

    async def test_http_error_becomes_fetch_error(self):
        """A 5xx response is a FetchError, not an exception."""
        client = _client(lambda request: httpx.Response(503))
        result = await client.fetch(SOURCES_BY_KEY["FAO"])
        await client.aclose()

        assert not result.ok
        assert result.records == ()
        assert result.error.source_key == "FAO"
        assert isinstance(result.error.cause, httpx.HTTPStatusError)

    async def test_invalid_json_becomes_fetch_error(self):
        client = _client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        result = await client.fetch(SOURCES_BY_KEY["USDA"])
        await client.aclose()

        assert not result.ok

    async def test_connection_error_becomes_fetch_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler)
        result = await client.fetch(SOURCES_BY_KEY["ICE"])
        await client.aclose()

        assert not result.ok
        assert result.error.source_key == "ICE"

    async def test_quote_shape_endpoint(self):
        """CME responds with a bare list of quotes."""
        quote = {"description": "Corn", "last": 4.25, "uom": "bushel", "group": "grains"}
        client = _client(lambda request: httpx.Response(200, json=[quote]))
        result = await client.fetch(SOURCES_BY_KEY["CME"])
        await client.aclose()

        assert result.ok
        assert result.records[0].source == "CME Group"


@pytest.mark.asyncio
class TestSourceClientContract:
    """fetch() never raises for source-level failures."""

    async def test_timeout_becomes_fetch_error(self):
        """A source that never answers is cut off by the timeout."""
        client = FakeSourceClient({"A": HANG}, timeout=0.05)
        result = await client.fetch(client.get_sources()[0])

        assert not result.ok
        assert "timed out" in str(result.error)

    async def test_exception_becomes_fetch_error(self):
        client = FakeSourceClient({"A": RuntimeError("boom")})
        result = await client.fetch(client.get_sources()[0])

        assert not result.ok
        assert isinstance(result.error.cause, RuntimeError)

    async def test_unknown_source_is_rejected(self):
        """Only configured descriptors are fetched."""
        client = FakeSourceClient({"A": []})
        result = await client.fetch(SourceDescriptor("ROGUE", "https://rogue.example"))

        assert not result.ok
        assert client.calls == []

    async def test_unparseable_payload_becomes_fetch_error(self):
        client = FakeSourceClient({"A": "not a list"})
        result = await client.fetch(client.get_sources()[0])

        assert not result.ok

    async def test_records_keep_source_order(self):
        payload = [canonical("Barley", 1.0), canonical("Oats", 2.0), canonical("Corn", 3.0)]
        client = FakeSourceClient({"A": payload})
        result = await client.fetch(client.get_sources()[0])

        assert [r.name for r in result.records] == ["Barley", "Oats", "Corn"]

    async def test_caller_cancellation_propagates(self):
        """Cancelling the caller is not swallowed as a fetch failure."""
        client = FakeSourceClient({"A": HANG}, timeout=5.0)
        task = asyncio.create_task(client.fetch(client.get_sources()[0]))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
