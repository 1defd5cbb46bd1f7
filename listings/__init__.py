"""Listings module for querying marketplace listings.

This module provides functionality for:
- Fetching pages of active orders and resolving their asset metadata
- Normalizing orders into Listing models and filtering them locally
- Caching query results per network with explicit invalidation
- Aggregating collections with floor prices and stats
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from config import settings_conf, get_network_config, NetworkConfigError
from images import resolve_image_url
from models import (
    Collection, CollectionDetail, CollectionStats, ErrorKind, Filter,
    Listing, ListingPage, AssetMetadata,
)
from metadata import MetadataFetcher
from proxy import KleverProxy, ProxyError, MalformedResponseError, client as default_client
from .cache import QueryCache
from .filters import apply_filters, sort_params, SORT_PARAMS
from .normalize import order_to_listing, parse_index, ORDER_STATUS_MAP

logger = logging.getLogger(__name__)

# Orders scanned when aggregating collections
COLLECTION_SCAN_LIMIT = 100

class ListingError(Exception):
    """Base exception for listing operations."""
    kind = ErrorKind.UPSTREAM_UNAVAILABLE

class CollectionNotFoundError(ListingError):
    """Raised when a collection has neither metadata nor listings."""
    kind = ErrorKind.INVALID_INPUT

def _orders_of(body: Dict[str, Any]) -> List[Dict[str, Any]]:
    data = body.get('data') if isinstance(body, dict) else None
    orders = data.get('orders') if isinstance(data, dict) else None
    if orders is None:
        return []
    if not isinstance(orders, list):
        raise MalformedResponseError(f"Expected a list of orders, got {type(orders).__name__}")
    valid = [order for order in orders if isinstance(order, dict)]
    if len(valid) != len(orders):
        logger.warning(f"Skipped {len(orders) - len(valid)} non-object order records")
    return valid

def _pagination_of(body: Dict[str, Any], page: int) -> Tuple[int, int, Optional[int]]:
    pagination = body.get('pagination') if isinstance(body, dict) else None
    if not isinstance(pagination, dict):
        return page, 0, None
    try:
        current = int(pagination.get('self') or page)
        total_pages = int(pagination.get('totalPages') or 0)
        total_records = pagination.get('totalRecords')
        total_records = int(total_records) if total_records is not None else None
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"Invalid pagination block: {pagination!r}") from e
    return current, total_pages, total_records

def collection_from_metadata(
    collection_id: str,
    metadata: AssetMetadata,
    floor_price: Optional[int] = None,
    gateway: Optional[str] = None,
    explorer_url: Optional[str] = None
) -> Collection:
    """Build a Collection from collection-level metadata."""
    return Collection(
        collection_id=collection_id,
        name=metadata.display_name or collection_id,
        ticker=metadata.ticker or collection_id.split('-')[0],
        creator=metadata.creator_address or metadata.owner_address or '',
        logo=resolve_image_url(metadata.uris, metadata.logo, gateway),
        royalty_bps=metadata.royalty_bps,
        total_supply=metadata.max_supply,
        minted_count=metadata.circulating_supply,
        floor_price=floor_price,
        explorer_url=explorer_url,
    )

def _collection_sort_key(collection: Collection):
    # Collections with a floor price first, cheapest first
    return (collection.floor_price is None, collection.floor_price or 0)

class ListingManager:
    """Manager class for listing queries."""

    def __init__(
        self,
        proxy: Optional[KleverProxy] = None,
        fetcher: Optional[MetadataFetcher] = None,
        cache: Optional[QueryCache] = None,
        page_size: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        """Initialize the listing manager.

        Args:
            proxy: API client. Defaults to the shared proxy client.
            fetcher: Metadata fetcher. Defaults to one built on ``proxy``.
            cache: Query cache. Defaults to one using the cache settings.
            page_size: Orders per page. Defaults to ``listings_page_size``.
            clock: Wall clock in unix seconds, used to expire listings.
        """
        self.proxy = proxy if proxy is not None else default_client
        self.fetcher = fetcher if fetcher is not None else MetadataFetcher(self.proxy)
        self.cache = cache if cache is not None else QueryCache()
        self.page_size = page_size or settings_conf['listings_page_size']
        self.clock = clock

    def invalidate(self, network: str):
        """Drop every cached query for ``network``."""
        self.cache.invalidate(network.strip().lower())

    async def _normalize_orders(self, network: str, orders: List[Dict[str, Any]]) -> List[Listing]:
        items = [
            (str(order.get('collectionId') or ''), parse_index(order.get('assetId')))
            for order in orders
        ]
        metadata = await self.fetcher.fetch_many(network, items)

        network_config = get_network_config(network)
        now = int(self.clock())
        listings = []
        for order, meta in zip(orders, metadata):
            try:
                listing = order_to_listing(order, meta).expire_if_due(now)
            except MalformedResponseError as e:
                logger.warning(f"Skipping malformed order: {str(e)}")
                continue
            asset = listing.asset
            listings.append(listing.model_copy(update={
                'explorer_url': network_config.asset_url(asset.collection_id, asset.index),
            }))
        return listings

    async def _fetch_page(self, network: str, filters: Filter, page: int) -> ListingPage:
        sort_by, order_by = sort_params(filters.sort)
        body = await self.proxy.get_orders(
            network,
            status='created',
            page=page,
            limit=self.page_size,
            sort_by=sort_by,
            order_by=order_by,
            collection=filters.collection_id,
        )
        orders = _orders_of(body)
        logger.debug(f"Loaded {len(orders)} orders on {network}, fetching metadata")

        listings = await self._normalize_orders(network, orders)
        filtered = apply_filters(listings, filters)
        current, total_pages, total_records = _pagination_of(body, page)

        with_images = sum(1 for listing in filtered if listing.asset.image_url)
        logger.info(f"{len(filtered)} listings on {network} page {page} ({with_images} with images)")

        return ListingPage(
            listings=filtered,
            total=total_records or len(filtered),
            page=page,
            has_more=current < total_pages,
        )

    async def list(
        self,
        network: str,
        filters: Optional[Filter] = None,
        page: int = 1,
        force: bool = False
    ) -> ListingPage:
        """Get one page of active listings.

        Query failures do not raise: they come back as an empty page carrying
        ``error`` and ``error_kind``, and are never cached.

        Args:
            network: Network name
            filters: Optional listing filters
            page: 1-based page number
            force: Bypass the cache

        Returns:
            ListingPage with the filtered listings and pagination
        """
        filters = filters or Filter()
        network = (network or '').strip().lower()
        if page < 1:
            return ListingPage(
                page=page,
                error=f"Invalid page: {page}",
                error_kind=ErrorKind.INVALID_INPUT,
            )

        key = (network, f"listings:{page}:{filters.cache_key()}")
        try:
            return await self.cache.get_or_fetch(
                key, lambda: self._fetch_page(network, filters, page), force=force
            )
        except ProxyError as e:
            logger.error(f"Failed to fetch listings on {network}: {str(e)}")
            return ListingPage(page=page, error=str(e), error_kind=e.kind)
        except NetworkConfigError as e:
            return ListingPage(page=page, error=str(e), error_kind=ErrorKind.INVALID_INPUT)

    async def _fetch_collections(self, network: str) -> List[Collection]:
        body = await self.proxy.get_orders(
            network, status='created', page=1, limit=COLLECTION_SCAN_LIMIT
        )
        prices: Dict[str, List[int]] = {}
        for order in _orders_of(body):
            collection_id = str(order.get('collectionId') or '').strip()
            if not collection_id:
                continue
            bucket = prices.setdefault(collection_id, [])
            try:
                price = int(order.get('price'))
            except (TypeError, ValueError):
                continue
            if price > 0:
                bucket.append(price)

        collection_ids = list(prices)
        metadata = await self.fetcher.fetch_collections(network, collection_ids)

        network_config = get_network_config(network)
        collections = [
            collection_from_metadata(
                collection_id,
                meta,
                min(prices[collection_id]) if prices[collection_id] else None,
                explorer_url=network_config.collection_url(collection_id),
            )
            for collection_id, meta in zip(collection_ids, metadata)
            if meta is not None
        ]
        return sorted(collections, key=_collection_sort_key)

    async def get_collections(self, network: str, force: bool = False) -> List[Collection]:
        """Get collections with active listings, cheapest floor first.

        Raises:
            ProxyError: If the orders cannot be fetched
            NetworkConfigError: If the network is unknown
        """
        network = (network or '').strip().lower()
        return await self.cache.get_or_fetch(
            (network, 'collections'), lambda: self._fetch_collections(network), force=force
        )

    async def _fetch_collection(self, network: str, collection_id: str) -> CollectionDetail:
        body = await self.proxy.get_orders(
            network,
            status='created',
            page=1,
            limit=COLLECTION_SCAN_LIMIT,
            collection=collection_id,
        )
        listings = await self._normalize_orders(network, _orders_of(body))
        meta = (await self.fetcher.fetch_collections(network, [collection_id]))[0]

        if meta is None and not listings:
            raise CollectionNotFoundError(f"Collection not found: {collection_id}")

        prices = [listing.price for listing in listings if listing.price > 0]
        floor_price = min(prices) if prices else 0
        collection = None
        if meta is not None:
            collection = collection_from_metadata(
                collection_id,
                meta,
                floor_price or None,
                explorer_url=get_network_config(network).collection_url(collection_id),
            )

        stats = CollectionStats(
            floor_price=floor_price,
            listings=len(listings),
            owners=len({listing.seller for listing in listings}),
            items=(collection.minted_count if collection else 0) or len(listings),
        )
        return CollectionDetail(collection=collection, listings=listings, stats=stats)

    async def get_collection(self, network: str, collection_id: str, force: bool = False) -> CollectionDetail:
        """Get a collection with its active listings and stats.

        Args:
            network: Network name
            collection_id: Collection asset id, e.g. "XBLOCK-1HDW"
            force: Bypass the cache

        Returns:
            CollectionDetail with collection, listings and stats

        Raises:
            CollectionNotFoundError: If neither metadata nor listings exist
            ProxyError: If the orders cannot be fetched
            NetworkConfigError: If the network is unknown
        """
        network = (network or '').strip().lower()
        collection_id = collection_id.strip()
        return await self.cache.get_or_fetch(
            (network, f"collection:{collection_id}"),
            lambda: self._fetch_collection(network, collection_id),
            force=force
        )

class ListingFeed:
    """Caller-side listing state for one network.

    Every request takes a new request number before awaiting; a response
    whose number is no longer the latest is discarded so a slow, superseded
    query never overwrites fresher state, even when both asked for the same
    filters and page.
    """

    def __init__(self, manager: ListingManager, network: str):
        self.manager = manager
        self.network = network
        self.filters = Filter()
        self.state = ListingPage()
        self._request_id = 0

    async def _request(self, filters: Filter, page: int, force: bool) -> Optional[ListingPage]:
        self._request_id += 1
        request_id = self._request_id
        result = await self.manager.list(self.network, filters, page, force=force)
        if request_id != self._request_id:
            logger.debug(f"Discarding superseded response for page {page} on {self.network}")
            return None
        return result

    async def load(self, filters: Optional[Filter] = None, force: bool = False) -> ListingPage:
        """Load the first page for ``filters``, replacing current state."""
        self.filters = filters or Filter()
        result = await self._request(self.filters, 1, force)
        if result is not None:
            self.state = result
        return self.state

    async def load_more(self) -> ListingPage:
        """Append the next page to current state."""
        if not self.state.has_more:
            return self.state
        filters = self.filters
        result = await self._request(filters, self.state.page + 1, False)
        if result is None:
            return self.state
        if result.error:
            self.state = self.state.model_copy(
                update={'error': result.error, 'error_kind': result.error_kind}
            )
        else:
            self.state = result.model_copy(
                update={'listings': list(self.state.listings) + list(result.listings)}
            )
        return self.state

    async def refresh(self) -> ListingPage:
        """Reload the first page, bypassing the cache."""
        return await self.load(self.filters, force=True)

__all__ = [
    'ListingManager',
    'ListingFeed',
    'ListingError',
    'CollectionNotFoundError',
    'QueryCache',
    'apply_filters',
    'sort_params',
    'order_to_listing',
    'collection_from_metadata',
    'SORT_PARAMS',
    'ORDER_STATUS_MAP',
]
