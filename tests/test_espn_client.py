"""
Tests for the pooled ESPN HTTP client.
"""

import httpx
import pytest

from pickem_sync.errors import TransportError
from pickem_sync.espn_client import ESPNClient


def _client(config_manager, handler):
    return ESPNClient(config_manager, transport=httpx.MockTransport(handler))


class TestESPNClient:
    """Test request issuing and error mapping."""

    @pytest.mark.asyncio
    async def test_get_json_sends_fixed_headers_and_params(self, config_manager):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"events": []})

        client = _client(config_manager, handler)
        try:
            data = await client.get_json("/scoreboard", {"week": 3, "seasontype": 2})
        finally:
            await client.aclose()

        assert data == {"events": []}
        request = seen[0]
        assert request.url.path.endswith("/football/nfl/scoreboard")
        assert request.url.params["week"] == "3"
        assert request.headers["User-Agent"] == config_manager.get_user_agent()
        assert request.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_non_2xx_maps_to_transport_error_with_status(self, config_manager):
        client = _client(config_manager, lambda request: httpx.Response(503))
        try:
            with pytest.raises(TransportError) as exc_info:
                await client.get_json("/scoreboard")
        finally:
            await client.aclose()

        assert exc_info.value.status_code == 503
        assert "Service Unavailable" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_maps_to_transport_error(self, config_manager):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        client = _client(config_manager, handler)
        try:
            with pytest.raises(TransportError, match="timed out") as exc_info:
                await client.get_json("/scoreboard")
        finally:
            await client.aclose()

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_network_error_maps_to_transport_error(self, config_manager):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(config_manager, handler)
        try:
            with pytest.raises(TransportError, match="Network error"):
                await client.get_json("/scoreboard")
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_invalid_json_maps_to_transport_error(self, config_manager):
        client = _client(config_manager, lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        try:
            with pytest.raises(TransportError, match="Invalid JSON"):
                await client.get_json("/scoreboard")
        finally:
            await client.aclose()


class TestClientRecycling:
    """Test connection pool replacement."""

    @pytest.mark.asyncio
    async def test_recycle_replaces_client(self, config_manager):
        client = _client(config_manager, lambda request: httpx.Response(200, json={"ok": True}))
        old_client = client._client

        await client.recycle()

        try:
            assert client.generation == 2
            assert old_client.is_closed
            assert not client.is_closed
            assert await client.get_json("/scoreboard") == {"ok": True}
        finally:
            await client.aclose()

        assert client.is_closed
