"""Tests for the Klever proxy client."""

import httpx
import pytest

from config import NetworkConfigError
from proxy import KleverProxy, MalformedResponseError, UpstreamUnavailableError

def make_proxy(handler, max_tries=1):
    return KleverProxy(timeout=5, max_tries=max_tries, transport=httpx.MockTransport(handler))

@pytest.mark.asyncio
async def test_get_orders_sends_query():
    """Test the orders request hits the network's base URL with its parameters."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={'data': {'orders': []}, 'pagination': {}, 'error': ''})

    async with make_proxy(handler) as proxy:
        body = await proxy.get_orders("testnet", page=2, limit=5, sort_by='price', order_by='asc')

    assert body['data'] == {'orders': []}
    request = seen[0]
    assert request.url.host == "api.testnet.klever.org"
    assert request.url.path == "/v1.0/marketplaces/orders/list"
    assert request.url.params['status'] == "created"
    assert request.url.params['page'] == "2"
    assert request.url.params['limit'] == "5"
    assert request.url.params['sortBy'] == "price"
    assert 'collection' not in request.url.params

@pytest.mark.asyncio
async def test_orders_not_found_is_empty_page():
    """Test a 404 on the list endpoints means no records."""
    async with make_proxy(lambda request: httpx.Response(404)) as proxy:
        orders = await proxy.get_orders("mainnet", page=3)
        transactions = await proxy.get_transactions("mainnet", 17)

    assert orders['data'] == {'orders': []}
    assert orders['pagination']['self'] == 3
    assert transactions['data'] == {'transactions': []}

@pytest.mark.asyncio
async def test_asset_not_found_raises():
    """Test a 404 on a single asset is an error."""
    async with make_proxy(lambda request: httpx.Response(404)) as proxy:
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await proxy.get_nft("mainnet", "CAT-1", 3)
    assert exc_info.value.status == 404
    assert exc_info.value.path == "/v1.0/assets/sft/CAT-1/3"

@pytest.mark.asyncio
async def test_server_error_is_upstream_unavailable():
    async with make_proxy(lambda request: httpx.Response(500)) as proxy:
        with pytest.raises(UpstreamUnavailableError, match="HTTP 500"):
            await proxy.get_asset("mainnet", "CAT-1")

@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(200, content=b"<html>gateway</html>"),
    httpx.Response(200, json=["not", "an", "object"]),
])
async def test_malformed_bodies(response):
    """Test invalid JSON and non-object bodies are malformed."""
    async with make_proxy(lambda request: response) as proxy:
        with pytest.raises(MalformedResponseError):
            await proxy.get_account("mainnet", "klv1abc")

@pytest.mark.asyncio
async def test_error_field_is_upstream_unavailable():
    """Test a 200 carrying an error message still fails."""
    body = {'data': None, 'error': "rate limited", 'code': "internal_issue"}
    async with make_proxy(lambda request: httpx.Response(200, json=body)) as proxy:
        with pytest.raises(UpstreamUnavailableError, match="rate limited"):
            await proxy.get_asset("mainnet", "CAT-1")

@pytest.mark.asyncio
async def test_connection_failure_is_upstream_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_proxy(handler) as proxy:
        with pytest.raises(UpstreamUnavailableError, match="Failed to reach"):
            await proxy.get_asset("mainnet", "CAT-1")

@pytest.mark.asyncio
async def test_timeout_is_upstream_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    async with make_proxy(handler) as proxy:
        with pytest.raises(UpstreamUnavailableError, match="timed out"):
            await proxy.get_asset("mainnet", "CAT-1")

@pytest.mark.asyncio
async def test_transport_errors_are_retried():
    """Test a transient connection failure is retried."""
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, json={'data': {'asset': {'name': "Cat"}}})

    async with make_proxy(handler, max_tries=2) as proxy:
        body = await proxy.get_asset("mainnet", "CAT-1")

    assert len(attempts) == 2
    assert body['data']['asset']['name'] == "Cat"

@pytest.mark.asyncio
async def test_unknown_network():
    async with make_proxy(lambda request: httpx.Response(200, json={})) as proxy:
        with pytest.raises(NetworkConfigError):
            await proxy.get_asset("moonnet", "CAT-1")
