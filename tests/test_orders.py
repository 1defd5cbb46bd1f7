"""Tests for the orders module."""

import pytest

from config import DEFAULT_MARKETPLACE_ID, settings_conf
from models import ErrorKind, TxState
from orders import (
    OrderManager, Transaction, InvalidInputError, InvalidTransition,
    build_buy_payload, build_sell_payload, build_cancel_payload, classify_error,
)

from conftest import FakeBridge

NOW = 1700000000

class FakeListings:
    """Records cache invalidations."""

    def __init__(self):
        self.invalidated = []

    def invalidate(self, network):
        self.invalidated.append(network)

@pytest.fixture
def listings():
    return FakeListings()

@pytest.fixture
def order_manager(fake_bridge, listings):
    """Create and return an OrderManager over a fake bridge."""
    return OrderManager(fake_bridge, listing_manager=listings, clock=lambda: NOW)

def test_buy_payload():
    """Test the buy payload converts the display price."""
    assert build_buy_payload("ORD1", 1.5) == {
        'buyType': 1, 'id': "ORD1", 'currencyId': "KLV", 'amount': 1500000,
    }

def test_sell_payload():
    payload = build_sell_payload("CAT-1/7", "2", "KLV", NOW, "abc123")
    assert payload == {
        'marketType': 0,
        'marketplaceId': "abc123",
        'assetId': "CAT-1/7",
        'currencyId': "KLV",
        'price': 2000000,
        'endTime': NOW,
    }

@pytest.mark.parametrize("asset_id,price", [
    ("CAT-1", 1),
    ("CAT-1/", 1),
    ("", 1),
    ("CAT-1/7", 0),
    ("CAT-1/7", -1),
    ("CAT-1/7", "abc"),
    ("CAT-1/7", 0.0000001),
])
def test_sell_payload_rejects_bad_input(asset_id, price):
    """Test bad asset ids and prices are rejected before signing."""
    with pytest.raises(InvalidInputError):
        build_sell_payload(asset_id, price, "KLV", NOW, "abc123")

def test_cancel_payload():
    assert build_cancel_payload(" ORD1 ") == {'orderId': "ORD1"}
    with pytest.raises(InvalidInputError):
        build_cancel_payload("")

@pytest.mark.parametrize("message,kind", [
    ("User rejected the request", ErrorKind.USER_REJECTED),
    ("Signature denied", ErrorKind.USER_REJECTED),
    ("insufficient funds for fee", ErrorKind.INSUFFICIENT_FUNDS),
    ("node unreachable", ErrorKind.UPSTREAM_UNAVAILABLE),
])
def test_classify_error(message, kind):
    assert classify_error(message) == kind

def test_transaction_rejects_skipped_states():
    """Test states cannot be skipped or left after a terminal state."""
    tx = Transaction('buy', 'mainnet')
    with pytest.raises(InvalidTransition):
        tx.advance(TxState.SIGNING)
    tx.advance(TxState.FAILED)
    with pytest.raises(InvalidTransition):
        tx.advance(TxState.BUILDING)

@pytest.mark.asyncio
async def test_buy_succeeds(order_manager, fake_bridge, listings):
    """Test a successful buy walks every state and invalidates listings."""
    result = await order_manager.buy("mainnet", "ORD1", 100)

    assert result.success
    assert result.tx_hash == "f00dbabe"
    assert result.explorer_url == "https://kleverscan.org/transaction/f00dbabe"
    assert result.history == [
        TxState.IDLE, TxState.BUILDING, TxState.SIGNING, TxState.BROADCASTING, TxState.SUCCEEDED,
    ]
    assert fake_bridge.calls == ['build', 'sign', 'broadcast']
    assert fake_bridge.contracts == [{
        'type': 17,
        'payload': {'buyType': 1, 'id': "ORD1", 'currencyId': "KLV", 'amount': 100000000},
    }]
    assert listings.invalidated == ["mainnet"]

@pytest.mark.asyncio
async def test_sell_uses_duration_and_network_marketplace(order_manager, fake_bridge):
    """Test the end time and default marketplace id."""
    result = await order_manager.sell("testnet", "CAT-1/7", 10, duration_days=7)

    assert result.success
    assert result.explorer_url.startswith("https://testnet.kleverscan.org/")
    contract = fake_bridge.contracts[0]
    assert contract['type'] == 18
    assert contract['payload']['endTime'] == NOW + 7 * 86400
    assert contract['payload']['marketplaceId'] == DEFAULT_MARKETPLACE_ID
    assert contract['payload']['price'] == 10000000

@pytest.mark.asyncio
@pytest.mark.parametrize("days", [0, -1, 10 ** 6, True, 1.5])
async def test_sell_rejects_bad_duration(order_manager, fake_bridge, days):
    """Test invalid durations fail before anything is signed."""
    result = await order_manager.sell("mainnet", "CAT-1/7", 10, duration_days=days)

    assert not result.success
    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert fake_bridge.calls == []

@pytest.mark.asyncio
async def test_cancel_succeeds(order_manager, fake_bridge):
    result = await order_manager.cancel("mainnet", "ORD1")
    assert result.success
    assert fake_bridge.contracts == [{'type': 19, 'payload': {'orderId': "ORD1"}}]

@pytest.mark.asyncio
async def test_no_bridge_is_not_connected(listings):
    """Test a missing wallet fails from idle."""
    result = await OrderManager(None, listing_manager=listings).buy("mainnet", "ORD1", 1)

    assert result.state == TxState.FAILED
    assert result.error_kind == ErrorKind.NOT_CONNECTED
    assert "Klever Extension" in result.message
    assert result.history == [TxState.IDLE, TxState.FAILED]
    assert listings.invalidated == []

@pytest.mark.asyncio
async def test_user_rejection(listings):
    """Test a declined signature keeps the wallet message."""
    bridge = FakeBridge(sign_error=RuntimeError("User rejected the request"))
    result = await OrderManager(bridge, listing_manager=listings).buy("mainnet", "ORD1", 1)

    assert result.error_kind == ErrorKind.USER_REJECTED
    assert result.message == "User rejected the request"
    assert result.history[-2:] == [TxState.SIGNING, TxState.FAILED]
    assert bridge.calls == ['build', 'sign']
    assert listings.invalidated == []

@pytest.mark.asyncio
async def test_insufficient_funds_while_building():
    bridge = FakeBridge(build_error=RuntimeError("Insufficient balance for KLV"))
    result = await OrderManager(bridge).buy("mainnet", "ORD1", 1)
    assert result.error_kind == ErrorKind.INSUFFICIENT_FUNDS
    assert result.history[-2:] == [TxState.BUILDING, TxState.FAILED]

@pytest.mark.asyncio
async def test_broadcast_without_hash():
    """Test a broadcast response without a hash fails."""
    result = await OrderManager(FakeBridge(response={'data': {}})).cancel("mainnet", "ORD1")
    assert result.error_kind == ErrorKind.MALFORMED_RESPONSE
    assert result.message == "Transaction failed - no hash returned"
    assert result.history[-2:] == [TxState.BROADCASTING, TxState.FAILED]

@pytest.mark.asyncio
async def test_broadcast_error_field():
    """Test an error in the broadcast response is surfaced."""
    bridge = FakeBridge(response={'error': "insufficient funds", 'data': None})
    result = await OrderManager(bridge).buy("mainnet", "ORD1", 1)
    assert result.error_kind == ErrorKind.INSUFFICIENT_FUNDS
    assert result.message == "insufficient funds"

@pytest.mark.asyncio
async def test_unknown_network_is_invalid_input(order_manager, fake_bridge):
    result = await order_manager.buy("moonnet", "ORD1", 1)
    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert fake_bridge.calls == []

@pytest.mark.asyncio
async def test_currency_defaults_to_setting(order_manager, fake_bridge, monkeypatch):
    """Test buys and sells without a currency use default_currency."""
    monkeypatch.setitem(settings_conf, 'default_currency', "DGKO")
    assert build_buy_payload("ORD1", 1)['currencyId'] == "DGKO"

    result = await order_manager.sell("mainnet", "CAT-1/7", "1.5")
    assert result.success
    assert fake_bridge.contracts[0]['payload']['currencyId'] == "DGKO"
    assert fake_bridge.contracts[0]['payload']['price'] == 15000
