"""Wallet bridge interface.

The bridge is owned by a wallet extension outside this system: it builds,
signs and broadcasts transactions, and keeps the keys. Anything implementing
this protocol can be passed to ``orders.OrderManager``.
"""
from typing import Any, Dict, List, Protocol, runtime_checkable

@runtime_checkable
class WalletBridge(Protocol):
    async def build_transaction(self, contracts: List[Dict[str, Any]]) -> Any:
        """Build an unsigned transaction from ``[{type, payload}]`` contract calls."""
        ...

    async def sign_transaction(self, transaction: Any) -> Any:
        """Sign a built transaction; raises if the user declines."""
        ...

    async def broadcast_transactions(self, transactions: List[Any]) -> Dict[str, Any]:
        """Broadcast signed transactions.

        Returns ``{"data": {"txsHashes": [...]}}`` on success or a body with
        an ``error`` field.
        """
        ...

__all__ = ['WalletBridge']
