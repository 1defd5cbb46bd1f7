"""Orders module for marketplace transactions.

This module builds, signs and broadcasts buy, sell and cancel transactions
through a wallet bridge. Each call is one attempt that moves through
idle -> building -> signing -> broadcasting -> succeeded/failed and ends in a
TxResult; failures never raise past the manager. There is no automatic
retry: to retry, call again.
"""
import logging
import time
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union

from activity.codes import ContractType, BUY_TYPE_MARKET, MARKET_TYPE_INSTANT_SELL
from config import settings_conf, get_network_config, NetworkConfig, NetworkConfigError
from currency import to_smallest_units
from models import ErrorKind, TxResult, TxState
from wallet import WalletBridge

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

class OrderError(Exception):
    """Base class for order-related errors."""
    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        if kind is not None:
            self.kind = kind
        super().__init__(message)

class NotConnectedError(OrderError):
    """Raised when no wallet bridge is available."""
    kind = ErrorKind.NOT_CONNECTED

class UserRejectedError(OrderError):
    """Raised when the user declines to sign."""
    kind = ErrorKind.USER_REJECTED

class InsufficientFundsError(OrderError):
    """Raised when the account cannot cover the transaction."""
    kind = ErrorKind.INSUFFICIENT_FUNDS

class InvalidInputError(OrderError):
    """Raised when transaction parameters are invalid."""
    kind = ErrorKind.INVALID_INPUT

class BroadcastError(OrderError):
    """Raised when a broadcast returns an error or no transaction hash."""
    kind = ErrorKind.UPSTREAM_UNAVAILABLE

class InvalidTransition(RuntimeError):
    """Raised when a transaction skips or repeats a state."""

# Allowed state transitions of one transaction attempt
TRANSITIONS = {
    TxState.IDLE: {TxState.BUILDING, TxState.FAILED},
    TxState.BUILDING: {TxState.SIGNING, TxState.FAILED},
    TxState.SIGNING: {TxState.BROADCASTING, TxState.FAILED},
    TxState.BROADCASTING: {TxState.SUCCEEDED, TxState.FAILED},
    TxState.SUCCEEDED: set(),
    TxState.FAILED: set(),
}

def classify_error(message: str) -> ErrorKind:
    """Pick an error kind from a wallet error message."""
    lower = (message or '').lower()
    if 'rejected' in lower or 'denied' in lower:
        return ErrorKind.USER_REJECTED
    if 'insufficient' in lower:
        return ErrorKind.INSUFFICIENT_FUNDS
    return ErrorKind.UPSTREAM_UNAVAILABLE

WALLET_ERRORS = {
    ErrorKind.USER_REJECTED: UserRejectedError,
    ErrorKind.INSUFFICIENT_FUNDS: InsufficientFundsError,
}

def wallet_error(message: str) -> OrderError:
    """Wrap a wallet error message, verbatim, in the matching OrderError."""
    kind = classify_error(message)
    return WALLET_ERRORS.get(kind, OrderError)(message, kind)

def _require_text(name: str, value: Any) -> str:
    text = str(value or '').strip()
    if not text:
        raise InvalidInputError(f"{name} is required")
    return text

def _price_units(price: Union[int, float, str, Decimal], currency_id: str) -> int:
    try:
        amount = to_smallest_units(price, currency_id)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    if amount <= 0:
        raise InvalidInputError(f"Price must be positive: {price!r} {currency_id}")
    return amount

def build_buy_payload(
    order_id: str,
    price: Union[int, float, str, Decimal],
    currency_id: Optional[str] = None
) -> Dict[str, Any]:
    """Build a market buy payload; ``price`` is a display amount.

    Raises:
        InvalidInputError: Empty order id or non-positive price
    """
    order_id = _require_text('Order id', order_id)
    currency_id = _require_text('Currency id', currency_id or settings_conf['default_currency'])
    return {
        'buyType': BUY_TYPE_MARKET,
        'id': order_id,
        'currencyId': currency_id,
        'amount': _price_units(price, currency_id),
    }

def build_sell_payload(
    asset_id: str,
    price: Union[int, float, str, Decimal],
    currency_id: str,
    end_time: int,
    marketplace_id: str
) -> Dict[str, Any]:
    """Build an instant-sell payload; ``price`` is a display amount.

    Raises:
        InvalidInputError: Bad asset id, price below the minimum, or empty ids
    """
    asset_id = _require_text('Asset id', asset_id)
    collection_id, _, index = asset_id.partition('/')
    if not collection_id or not index:
        raise InvalidInputError(f"Asset id must be collection/index: {asset_id!r}")
    currency_id = _require_text('Currency id', currency_id)
    amount = _price_units(price, currency_id)
    if amount < settings_conf['min_listing_price']:
        raise InvalidInputError(
            f"Price {amount} is below the minimum listing price of "
            f"{settings_conf['min_listing_price']} smallest units"
        )
    return {
        'marketType': MARKET_TYPE_INSTANT_SELL,
        'marketplaceId': _require_text('Marketplace id', marketplace_id),
        'assetId': asset_id,
        'currencyId': currency_id,
        'price': amount,
        'endTime': int(end_time),
    }

def build_cancel_payload(order_id: str) -> Dict[str, Any]:
    return {'orderId': _require_text('Order id', order_id)}

class Transaction:
    """State of one transaction attempt"""

    def __init__(self, operation: str, network: str):
        self.operation = operation
        self.network = network
        self.state = TxState.IDLE
        self.history: List[TxState] = [TxState.IDLE]
        self.payload: Dict[str, Any] = {}

    def advance(self, state: TxState):
        if state not in TRANSITIONS[self.state]:
            raise InvalidTransition(
                f"{self.operation}: cannot go from {self.state.value} to {state.value}"
            )
        logger.debug(f"{self.operation} on {self.network}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def succeed(self, tx_hash: str, explorer_url: str) -> TxResult:
        self.advance(TxState.SUCCEEDED)
        return TxResult(
            operation=self.operation,
            network=self.network,
            state=self.state,
            history=list(self.history),
            payload=self.payload,
            tx_hash=tx_hash,
            explorer_url=explorer_url,
        )

    def fail(self, error: OrderError) -> TxResult:
        self.advance(TxState.FAILED)
        return TxResult(
            operation=self.operation,
            network=self.network,
            state=self.state,
            history=list(self.history),
            payload=self.payload,
            error_kind=error.kind,
            message=str(error),
        )

def _first_hash(response: Any) -> Optional[str]:
    data = response.get('data') if isinstance(response, dict) else None
    hashes = data.get('txsHashes') if isinstance(data, dict) else None
    if isinstance(hashes, list) and hashes and hashes[0]:
        return str(hashes[0])
    return None

class OrderManager:
    """Builds and submits marketplace transactions."""

    def __init__(
        self,
        bridge: Optional[WalletBridge] = None,
        listing_manager=None,
        clock: Callable[[], float] = time.time
    ) -> None:
        """Initialize order manager.

        Args:
            bridge: Wallet bridge; None when no wallet extension is present
            listing_manager: Optional ListingManager whose cache is
                invalidated after a successful transaction
            clock: Wall clock in unix seconds, used for listing end times
        """
        self.bridge = bridge
        self.listing_manager = listing_manager
        self.clock = clock

    async def _submit(self, tx: Transaction, contract_type: ContractType) -> str:
        """Sign and broadcast ``tx.payload``, returning the transaction hash.

        Raises:
            OrderError: The wallet failed, the user declined, or the
                broadcast carried an error or no hash
        """
        contracts = [{'type': int(contract_type), 'payload': tx.payload}]
        try:
            unsigned = await self.bridge.build_transaction(contracts)
            tx.advance(TxState.SIGNING)
            signed = await self.bridge.sign_transaction(unsigned)
            tx.advance(TxState.BROADCASTING)
            response = await self.bridge.broadcast_transactions([signed])
        except InvalidTransition:
            raise
        except Exception as e:
            raise wallet_error(str(e) or type(e).__name__) from e

        logger.debug(f"{tx.operation} broadcast response: {response}")
        tx_hash = _first_hash(response)
        if tx_hash is None:
            error = response.get('error') if isinstance(response, dict) else None
            if error:
                raise BroadcastError(str(error), classify_error(str(error)))
            raise BroadcastError(
                'Transaction failed - no hash returned', ErrorKind.MALFORMED_RESPONSE
            )
        return tx_hash

    async def _run(
        self,
        operation: str,
        network: str,
        contract_type: ContractType,
        build: Callable[[NetworkConfig], Dict[str, Any]]
    ) -> TxResult:
        tx = Transaction(operation, (network or '').strip().lower())
        try:
            if self.bridge is None:
                raise NotConnectedError(
                    'Klever Extension not found. Please install Klever Extension.'
                )
            tx.advance(TxState.BUILDING)
            try:
                network_config = get_network_config(tx.network)
            except NetworkConfigError as e:
                raise InvalidInputError(str(e)) from e
            tx.payload = build(network_config)
            logger.debug(f"{operation} payload: {tx.payload}")
            tx_hash = await self._submit(tx, contract_type)
        except OrderError as e:
            logger.error(f"{operation} failed on {tx.network} while {tx.state.value}: {str(e)}")
            return tx.fail(e)

        result = tx.succeed(tx_hash, network_config.transaction_url(tx_hash))
        logger.info(f"{operation} succeeded on {tx.network}: {result.explorer_url}")
        if self.listing_manager is not None:
            self.listing_manager.invalidate(tx.network)
        return result

    async def buy(
        self,
        network: str,
        order_id: str,
        price: Union[int, float, str, Decimal],
        currency_id: Optional[str] = None
    ) -> TxResult:
        """Buy a listed NFT.

        Args:
            network: Network name
            order_id: Marketplace order id
            price: Price in display units, e.g. 100 for 100 KLV
            currency_id: Currency to pay with (``default_currency`` by default)

        Returns:
            TxResult with the transaction hash, or the error kind and message
        """
        return await self._run(
            'buy', network, ContractType.BUY,
            lambda _: build_buy_payload(order_id, price, currency_id)
        )

    async def sell(
        self,
        network: str,
        asset_id: str,
        price: Union[int, float, str, Decimal],
        currency_id: Optional[str] = None,
        duration_days: Optional[int] = None,
        marketplace_id: Optional[str] = None
    ) -> TxResult:
        """List an NFT for sale.

        Args:
            network: Network name
            asset_id: NFT as ``collection/index``, e.g. "OMNI-QW86/46"
            price: Price in display units
            currency_id: Currency to accept (``default_currency`` by default)
            duration_days: Listing duration (``default_listing_duration_days`` by default)
            marketplace_id: Marketplace to list on; the network default when omitted

        Returns:
            TxResult with the transaction hash, or the error kind and message
        """
        if duration_days is None:
            duration_days = settings_conf['default_listing_duration_days']

        def build(network_config: NetworkConfig) -> Dict[str, Any]:
            max_days = settings_conf['max_listing_duration_days']
            if isinstance(duration_days, bool) or not isinstance(duration_days, int) \
                    or not 1 <= duration_days <= max_days:
                raise InvalidInputError(
                    f"Listing duration must be between 1 and {max_days} days: {duration_days!r}"
                )
            end_time = int(self.clock()) + duration_days * SECONDS_PER_DAY
            return build_sell_payload(
                asset_id, price, currency_id or settings_conf['default_currency'], end_time,
                marketplace_id or network_config.marketplace_id
            )

        return await self._run('sell', network, ContractType.SELL, build)

    async def cancel(self, network: str, order_id: str) -> TxResult:
        """Cancel a listing.

        Args:
            network: Network name
            order_id: Marketplace order id to cancel

        Returns:
            TxResult with the transaction hash, or the error kind and message
        """
        return await self._run(
            'cancel', network, ContractType.CANCEL_MARKET_ORDER,
            lambda _: build_cancel_payload(order_id)
        )

__all__ = [
    'OrderManager',
    'Transaction',
    'OrderError',
    'NotConnectedError',
    'UserRejectedError',
    'InsufficientFundsError',
    'InvalidInputError',
    'BroadcastError',
    'classify_error',
    'build_buy_payload',
    'build_sell_payload',
    'build_cancel_payload',
]
