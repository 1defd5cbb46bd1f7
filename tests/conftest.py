"""Shared fixtures and fakes for the test suite."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from config import get_network_config
from proxy import UpstreamUnavailableError

SELLER = "klv1seller0000000000000000000000000000000000000000000000"
BUYER = "klv1buyer00000000000000000000000000000000000000000000000"

def make_order(
    order_id: str = "ORD1",
    collection_id: str = "ABC-1234",
    asset_id: str = "42",
    price: Any = 5000000,
    status: str = "created",
    owner: str = SELLER,
    **extra
) -> Dict[str, Any]:
    """Build a raw marketplace order."""
    order = {
        "orderId": order_id,
        "marketplaceId": "417b70c0eb7a33cb",
        "assetId": asset_id,
        "collectionId": collection_id,
        "ownerAddress": owner,
        "price": price,
        "currencyId": "KLV",
        "endTime": 0,
        "timestamp": 1700000000,
        "status": status,
    }
    order.update(extra)
    return order

def asset_body(**fields) -> Dict[str, Any]:
    """Wrap asset fields the way the asset endpoints do."""
    return {"data": {"asset": fields}, "error": "", "code": "successful"}

class FakeProxy:
    """In-memory stand-in for KleverProxy.

    ``nfts``, ``assets``, ``transactions`` and ``accounts`` map lookups to a
    response body or an exception instance; a missing entry answers 404.
    """

    def __init__(
        self,
        orders: Optional[List[Dict[str, Any]]] = None,
        nfts: Optional[Dict[Any, Any]] = None,
        assets: Optional[Dict[str, Any]] = None,
        transactions: Optional[Dict[int, Any]] = None,
        accounts: Optional[Dict[str, Any]] = None,
        pagination: Optional[Dict[str, Any]] = None
    ):
        self.orders = orders or []
        self.nfts = nfts or {}
        self.assets = assets or {}
        self.transactions = transactions or {}
        self.accounts = accounts or {}
        self.pagination = pagination
        self.order_error: Optional[Exception] = None
        self.order_delay = 0.0
        self.order_calls: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    @staticmethod
    def _answer(value: Any, path: str):
        if value is None:
            raise UpstreamUnavailableError(f"HTTP 404 from {path}", status=404, path=path)
        if isinstance(value, BaseException):
            raise value
        return value

    async def get_orders(self, network, status='created', page=1, limit=None,
                         sort_by=None, order_by=None, collection=None):
        get_network_config(network)
        self.order_calls.append({
            'network': network, 'status': status, 'page': page, 'limit': limit,
            'sortBy': sort_by, 'orderBy': order_by, 'collection': collection,
        })
        if self.order_delay:
            await asyncio.sleep(self.order_delay)
        if self.order_error is not None:
            raise self.order_error
        orders = [
            order for order in self.orders
            if collection is None or order.get('collectionId') == collection
        ]
        pagination = self.pagination or {
            'self': page, 'totalPages': 1, 'totalRecords': len(orders)
        }
        return {'data': {'orders': orders}, 'pagination': dict(pagination)}

    async def get_nft(self, network, collection_id, index):
        self.calls.append(('nft', collection_id, index))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            return self._answer(
                self.nfts.get((collection_id, index)),
                f'/v1.0/assets/sft/{collection_id}/{index}'
            )
        finally:
            self.in_flight -= 1

    async def get_asset(self, network, collection_id):
        self.calls.append(('asset', collection_id))
        return self._answer(self.assets.get(collection_id), f'/v1.0/assets/{collection_id}')

    async def get_transactions(self, network, contract_type, page=1, limit=None, status='success'):
        get_network_config(network)
        self.calls.append(('transactions', int(contract_type), page, limit))
        value = self.transactions.get(int(contract_type))
        if value is None:
            return {'data': {'transactions': []}, 'pagination': {'self': page, 'totalPages': 0, 'totalRecords': 0}}
        return self._answer(value, '/v1.0/transaction/list')

    async def get_account(self, network, address):
        self.calls.append(('account', address))
        return self._answer(self.accounts.get(address), f'/v1.0/address/{address}')

class FakeBridge:
    """Wallet bridge recording every call."""

    def __init__(
        self,
        response: Optional[Dict[str, Any]] = None,
        build_error: Optional[Exception] = None,
        sign_error: Optional[Exception] = None
    ):
        self.response = response if response is not None else {'data': {'txsHashes': ['f00dbabe']}}
        self.build_error = build_error
        self.sign_error = sign_error
        self.calls: List[str] = []
        self.contracts: Optional[List[Dict[str, Any]]] = None
        self.broadcasted: Optional[List[Any]] = None

    async def build_transaction(self, contracts):
        self.calls.append('build')
        self.contracts = contracts
        if self.build_error is not None:
            raise self.build_error
        return {'unsigned': contracts}

    async def sign_transaction(self, transaction):
        self.calls.append('sign')
        if self.sign_error is not None:
            raise self.sign_error
        return {'signed': transaction}

    async def broadcast_transactions(self, transactions):
        self.calls.append('broadcast')
        self.broadcasted = transactions
        return self.response

@pytest.fixture
def fake_proxy():
    """Proxy with one listed order and its metadata."""
    return FakeProxy(
        orders=[make_order()],
        nfts={('ABC-1234', 42): asset_body(name="Cat", logo="https://x/y.png")},
    )

@pytest.fixture
def fake_bridge():
    return FakeBridge()
