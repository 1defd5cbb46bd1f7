"""Activity module for reconstructing marketplace events.

Raw transactions carry a contract type code and a type-specific parameter
block, plus optional receipts. Each code in ``CONTRACT_KINDS`` maps to an
activity kind, and each kind has one builder registered in ``BUILDERS``.
Unknown codes are skipped, never raised.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from config import NetworkConfigError, settings_conf
from models import Activity, ActivityKind, ActivityPage, ErrorKind
from proxy import KleverProxy, ProxyError, client as default_client
from .codes import ContractType, CONTRACT_KINDS, codes_for

logger = logging.getLogger(__name__)

ACTIVITY_FILTERS = ('all',) + tuple(kind.value for kind in ActivityKind)

def split_asset_id(asset_id: str) -> Tuple[str, str]:
    """Split ``collection/index`` into its parts; the index defaults to "0"."""
    parts = asset_id.split('/')
    collection_id = parts[0] or asset_id
    index = parts[1] if len(parts) > 1 and parts[1] else '0'
    return collection_id, index

def _amount(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None

def _text(value: Any) -> Optional[str]:
    return str(value) if value not in (None, '') else None

def _build_sale(tx: Dict[str, Any], param: Dict[str, Any]) -> Activity:
    receipts = tx.get('receipts') or []
    receipt = next(
        (r for r in receipts if isinstance(r, dict) and '/' in str(r.get('assetId') or '')),
        None
    )
    if receipt is not None:
        collection_id, index = split_asset_id(str(receipt['assetId']))
    else:
        collection_id, index = str(param.get('id') or ''), '0'

    return Activity(
        kind=ActivityKind.SALE,
        tx_hash=str(tx.get('hash') or ''),
        timestamp=_amount(tx.get('timestamp')) or 0,
        collection_id=collection_id,
        index=index,
        price=_amount(param.get('amount')),
        currency=str(param.get('currencyId') or settings_conf['default_currency']),
        counterparty_from=_text(receipt.get('from')) if receipt else None,
        counterparty_to=_text(tx.get('sender')),
        order_id=_text(param.get('id')),
    )

def _build_listing(tx: Dict[str, Any], param: Dict[str, Any]) -> Activity:
    asset_id = str(param.get('assetId') or '')
    collection_id, index = split_asset_id(asset_id) if asset_id else ('', '0')
    return Activity(
        kind=ActivityKind.LISTING,
        tx_hash=str(tx.get('hash') or ''),
        timestamp=_amount(tx.get('timestamp')) or 0,
        collection_id=collection_id,
        index=index,
        price=_amount(param.get('price')),
        currency=str(param.get('currencyId') or settings_conf['default_currency']),
        counterparty_from=_text(tx.get('sender')),
    )

def _build_cancel(tx: Dict[str, Any], param: Dict[str, Any]) -> Activity:
    # Cancel transactions do not reference the asset
    return Activity(
        kind=ActivityKind.CANCEL,
        tx_hash=str(tx.get('hash') or ''),
        timestamp=_amount(tx.get('timestamp')) or 0,
        counterparty_from=_text(tx.get('sender')),
        order_id=_text(param.get('orderId') or param.get('id')),
    )

BUILDERS: Dict[ActivityKind, Callable[[Dict[str, Any], Dict[str, Any]], Activity]] = {
    ActivityKind.SALE: _build_sale,
    ActivityKind.LISTING: _build_listing,
    ActivityKind.CANCEL: _build_cancel,
}

def transaction_to_activity(tx: Dict[str, Any]) -> Optional[Activity]:
    """Reconstruct one activity from a raw transaction, or None if unrecognized."""
    if not isinstance(tx, dict):
        return None
    contracts = tx.get('contract')
    if not isinstance(contracts, list) or not contracts or not isinstance(contracts[0], dict):
        return None

    contract = contracts[0]
    try:
        kind = CONTRACT_KINDS.get(int(contract.get('type')))
    except (TypeError, ValueError):
        kind = None
    if kind is None:
        return None

    param = contract.get('parameter')
    return BUILDERS[kind](tx, param if isinstance(param, dict) else {})

def reconstruct_activities(records: Iterable[Dict[str, Any]]) -> List[Activity]:
    """Reconstruct activities from raw transactions, most recent first.

    Unrecognized records are dropped. Activities with equal timestamps keep
    their input order.
    """
    activities = [
        activity for activity in map(transaction_to_activity, records)
        if activity is not None
    ]
    activities.sort(key=lambda activity: activity.timestamp, reverse=True)
    return activities

class ActivityManager:
    """Fetches and reconstructs marketplace activity"""

    def __init__(self, proxy: Optional[KleverProxy] = None):
        self.proxy = proxy if proxy is not None else default_client

    async def _fetch_type(
        self, network: str, code: int, page: int, limit: int
    ) -> Tuple[Optional[Dict[str, Any]], Optional[ProxyError]]:
        try:
            return await self.proxy.get_transactions(network, code, page=page, limit=limit), None
        except ProxyError as e:
            logger.warning(f"Failed to fetch transactions of type {code}: {str(e)}")
            return None, e

    async def fetch(
        self,
        network: str,
        kind: str = 'all',
        page: int = 1,
        limit: Optional[int] = None
    ) -> ActivityPage:
        """Fetch marketplace activity.

        Every contract code of ``kind`` is fetched concurrently. A failing
        code contributes no records; only when every code fails does the page
        carry an error.

        Args:
            network: Network name
            kind: ``all``, ``sale``, ``listing`` or ``cancel``
            page: 1-based page number, applied to each code
            limit: Records per code (``activity_page_size`` by default)

        Returns:
            ActivityPage sorted most recent first
        """
        limit = limit or settings_conf['activity_page_size']
        network = (network or '').strip().lower()
        try:
            codes = codes_for(kind)
        except ValueError:
            return ActivityPage(
                error=f"Unknown activity type: {kind!r}",
                error_kind=ErrorKind.INVALID_INPUT,
            )

        try:
            results = await asyncio.gather(
                *(self._fetch_type(network, code, page, limit) for code in codes)
            )
        except NetworkConfigError as e:
            return ActivityPage(error=str(e), error_kind=ErrorKind.INVALID_INPUT)

        failures = [error for _, error in results if error is not None]
        if failures and len(failures) == len(results):
            return ActivityPage(error=str(failures[0]), error_kind=failures[0].kind)

        records: List[Dict[str, Any]] = []
        total = 0
        has_more = False
        for body, _ in results:
            if body is None:
                continue
            data = body.get('data')
            transactions = data.get('transactions') if isinstance(data, dict) else None
            if isinstance(transactions, list):
                records.extend(transactions)
            pagination = body.get('pagination')
            if isinstance(pagination, dict):
                total = max(total, _amount(pagination.get('totalRecords')) or 0)
                has_more = has_more or (
                    (_amount(pagination.get('self')) or page)
                    < (_amount(pagination.get('totalPages')) or 0)
                )

        activities = reconstruct_activities(records)
        logger.debug(f"Fetched {len(activities)} activities on {network}")
        return ActivityPage(activities=activities, total=total, has_more=has_more)

__all__ = [
    'ActivityManager',
    'ContractType',
    'CONTRACT_KINDS',
    'BUILDERS',
    'ACTIVITY_FILTERS',
    'transaction_to_activity',
    'reconstruct_activities',
    'split_asset_id',
]
