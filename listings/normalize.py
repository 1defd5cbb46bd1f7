"""Normalize raw marketplace orders into Listing models"""
import logging
from typing import Any, Dict, Optional

from config import settings_conf
from images import resolve_image_url
from models import Asset, AssetMetadata, Listing, ListingStatus
from proxy import MalformedResponseError

logger = logging.getLogger(__name__)

# Upstream order status -> listing status; anything else is cancelled
ORDER_STATUS_MAP = {
    'created': ListingStatus.ACTIVE,
    'fulfilled': ListingStatus.SOLD,
}

def parse_index(raw: Any) -> int:
    """Parse an order's item identifier into a unit index.

    Accepts ``"42"``, ``42`` and ``"COLL-1/42"``. Anything that does not
    parse as a non-negative integer is index 0.
    """
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw if raw >= 0 else 0
    text = str(raw or '').strip()
    if '/' in text:
        text = text.rsplit('/', 1)[1]
    if not text.isdigit():
        return 0
    return int(text)

def parse_status(raw: Any) -> ListingStatus:
    return ORDER_STATUS_MAP.get(str(raw or '').strip().lower(), ListingStatus.CANCELLED)

def _parse_price(order: Dict[str, Any]) -> int:
    raw = order.get('price')
    if isinstance(raw, bool):
        raw = None
    try:
        if isinstance(raw, float):
            if not raw.is_integer():
                raise ValueError(raw)
            price = int(raw)
        else:
            price = int(str(raw).strip())
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(
            f"Order {order.get('orderId')!r} has an invalid price: {raw!r}"
        ) from e
    if price < 0:
        raise MalformedResponseError(f"Order {order.get('orderId')!r} has a negative price: {price}")
    return price

def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, '') else None
    except (TypeError, ValueError):
        return None

def order_to_listing(
    order: Dict[str, Any],
    metadata: Optional[AssetMetadata],
    gateway: Optional[str] = None
) -> Listing:
    """Combine a raw order and its (optional) asset metadata into a Listing.

    Args:
        order: Raw order from the orders endpoint
        metadata: Metadata for the order's asset, or None when unavailable
        gateway: IPFS gateway host for image URLs

    Returns:
        The normalized Listing

    Raises:
        MalformedResponseError: If the order has no id or an invalid price
    """
    if not isinstance(order, dict):
        raise MalformedResponseError(f"Expected an order object, got {type(order).__name__}")

    order_id = str(order.get('orderId') or '').strip()
    if not order_id:
        raise MalformedResponseError("Order without orderId")

    collection_id = str(order.get('collectionId') or '').strip()
    index = parse_index(order.get('assetId'))
    seller = str(order.get('ownerAddress') or '')

    base_name = (metadata.display_name if metadata else None) or collection_id or 'Unknown'
    image_url = None
    creator = ''
    royalty_bps = 0
    if metadata is not None:
        image_url = resolve_image_url(metadata.uris, metadata.logo, gateway)
        creator = metadata.creator_address or metadata.owner_address or ''
        royalty_bps = metadata.royalty_bps

    asset = Asset(
        collection_id=collection_id,
        index=index,
        name=f"{base_name} #{index}",
        image_url=image_url,
        creator=creator,
        owner=seller,
        royalty_bps=royalty_bps,
    )

    expires_at = _optional_int(order.get('endTime'))
    return Listing(
        id=order_id,
        asset=asset,
        seller=seller,
        price=_parse_price(order),
        currency=str(order.get('currencyId') or settings_conf['default_currency']),
        status=parse_status(order.get('status')),
        created_at=_optional_int(order.get('timestamp')) or 0,
        expires_at=expires_at if expires_at and expires_at > 0 else None,
        marketplace_id=str(order.get('marketplaceId') or '') or None,
    )
