"""Metadata batch fetcher.

Resolves ``(collection_id, index)`` pairs to AssetMetadata. Items are fetched
in fixed-size batches: batches run one after another, items inside a batch
run concurrently. A failing item becomes None and never aborts its batch.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from config import settings_conf
from models import AssetMetadata, UriHint
from proxy import KleverProxy, ProxyError, MalformedResponseError, client as default_client

logger = logging.getLogger(__name__)

def normalize_uris(raw: Any) -> List[UriHint]:
    """Normalize upstream ``uris`` into a list of UriHint.

    The API returns either a list of ``{key, value}`` objects or a plain
    ``{key: value}`` object. Entries without a string value are dropped.
    """
    if not raw:
        return []

    hints: List[UriHint] = []
    if isinstance(raw, dict):
        for key, value in raw.items():
            if isinstance(value, str) and value.strip():
                hints.append(UriHint(key=str(key), value=value.strip()))
    elif isinstance(raw, list):
        for item in raw:
            if isinstance(item, dict):
                value = item.get('value')
                if isinstance(value, str) and value.strip():
                    hints.append(UriHint(key=str(item.get('key') or ''), value=value.strip()))
            elif isinstance(item, str) and item.strip():
                hints.append(UriHint(key='', value=item.strip()))
    return hints

def _unwrap_asset(body: Any) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise MalformedResponseError(f"Expected an asset object, got {type(body).__name__}")
    data = body.get('data')
    if isinstance(data, dict):
        asset = data.get('asset')
        return asset if isinstance(asset, dict) else data
    asset = body.get('asset')
    if isinstance(asset, dict):
        return asset
    return body

def _royalty_bps(royalties: Any) -> int:
    if not isinstance(royalties, dict):
        return 0
    value = royalties.get('transferPercentage')
    # Some assets carry a list of {amount, percentage} tiers
    if isinstance(value, list):
        value = value[0].get('percentage') if value and isinstance(value[0], dict) else 0
    try:
        bps = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(0, min(10000, bps))

def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0

def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None

def parse_asset_metadata(body: Any) -> AssetMetadata:
    """Build AssetMetadata from an asset endpoint response.

    Args:
        body: Decoded response; the asset is read from ``data.asset``,
            ``data``, ``asset`` or the body itself, in that order

    Returns:
        The parsed metadata

    Raises:
        MalformedResponseError: If no asset object can be found
    """
    asset = _unwrap_asset(body)
    attributes = asset.get('attributes') if isinstance(asset.get('attributes'), dict) else {}
    return AssetMetadata(
        asset_id=str(asset.get('assetId') or asset.get('id') or ''),
        name=_text(asset.get('name')),
        asset_name=_text(asset.get('assetName')),
        ticker=_text(asset.get('ticker')),
        owner_address=_text(asset.get('ownerAddress')),
        creator_address=_text(asset.get('creatorAddress')),
        logo=_text(asset.get('logo')),
        uris=normalize_uris(asset.get('uris')),
        royalty_bps=_royalty_bps(asset.get('royalties')),
        mime=_text(asset.get('mime')),
        max_supply=_to_int(asset.get('maxSupply') or attributes.get('maxSupply')),
        circulating_supply=_to_int(asset.get('circulatingSupply') or asset.get('initialSupply')),
    )

class MetadataFetcher:
    """Fetches asset metadata in bounded concurrent batches"""

    def __init__(self, proxy: Optional[KleverProxy] = None, batch_size: Optional[int] = None):
        self.proxy = proxy if proxy is not None else default_client
        self.batch_size = batch_size or settings_conf['metadata_batch_size']

    async def fetch_one(self, network: str, collection_id: str, index: int) -> Optional[AssetMetadata]:
        """Fetch metadata for one unit; None when it cannot be resolved.

        The unit endpoint is tried first. When it fails, or carries neither a
        logo nor URIs, the collection endpoint is used instead.
        """
        if not collection_id:
            return None

        unit: Optional[AssetMetadata] = None
        try:
            unit = parse_asset_metadata(await self.proxy.get_nft(network, collection_id, index))
            if unit.logo or unit.uris:
                return unit
        except ProxyError as e:
            logger.debug(f"Unit metadata for {collection_id}/{index} unavailable: {str(e)}")

        try:
            return parse_asset_metadata(await self.proxy.get_asset(network, collection_id))
        except ProxyError as e:
            if unit is None:
                logger.warning(f"No metadata for {collection_id}/{index}: {str(e)}")
            return unit

    async def fetch_many(
        self,
        network: str,
        items: Sequence[Tuple[str, int]]
    ) -> List[Optional[AssetMetadata]]:
        """Fetch metadata for many units.

        Args:
            network: Network name
            items: ``(collection_id, index)`` pairs

        Returns:
            One entry per item, in input order; None where the fetch failed
        """
        results: List[Optional[AssetMetadata]] = []
        for start in range(0, len(items), self.batch_size):
            batch = items[start:start + self.batch_size]
            logger.debug(f"Fetching metadata batch {start // self.batch_size + 1} ({len(batch)} items)")
            outcomes = await asyncio.gather(
                *(self.fetch_one(network, collection_id, index) for collection_id, index in batch),
                return_exceptions=True
            )
            for (collection_id, index), outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.warning(f"Metadata fetch for {collection_id}/{index} failed: {str(outcome)}")
                    outcome = None
                results.append(outcome)
        return results

    async def _fetch_collection(self, network: str, collection_id: str) -> Optional[AssetMetadata]:
        if not collection_id:
            return None
        try:
            return parse_asset_metadata(await self.proxy.get_asset(network, collection_id))
        except ProxyError as e:
            logger.warning(f"No collection metadata for {collection_id}: {str(e)}")
            return None

    async def fetch_collections(
        self,
        network: str,
        collection_ids: Sequence[str]
    ) -> List[Optional[AssetMetadata]]:
        """Fetch collection-level metadata, batched like ``fetch_many``"""
        results: List[Optional[AssetMetadata]] = []
        for start in range(0, len(collection_ids), self.batch_size):
            batch = collection_ids[start:start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self._fetch_collection(network, collection_id) for collection_id in batch),
                return_exceptions=True
            )
            for collection_id, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.warning(f"Collection fetch for {collection_id} failed: {str(outcome)}")
                    outcome = None
                results.append(outcome)
        return results
