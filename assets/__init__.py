"""Assets module for NFTs held by an account"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from images import resolve_image_url
from metadata import MetadataFetcher
from models import Asset, ErrorKind, UserAssets, UserAssetStats
from proxy import KleverProxy, MalformedResponseError, client as default_client

logger = logging.getLogger(__name__)

# assetType of fungible tokens; everything else is an NFT/SFT collection
FUNGIBLE_ASSET_TYPE = 0

class AssetError(Exception):
    """Raised for invalid asset queries"""
    kind = ErrorKind.INVALID_INPUT

def _holdings_of(body: Dict[str, Any]) -> Tuple[List[Tuple[str, int, int]], int]:
    """Extract ``(collection_id, index, balance)`` holdings and the collection count."""
    data = body.get('data') if isinstance(body, dict) else None
    account = data.get('account') if isinstance(data, dict) else None
    if not isinstance(account, dict):
        raise MalformedResponseError("Account response without data.account")

    assets = account.get('assets') or {}
    if not isinstance(assets, dict):
        raise MalformedResponseError(f"Expected an asset map, got {type(assets).__name__}")

    holdings = []
    collections = 0
    for collection_id, asset in assets.items():
        if not isinstance(asset, dict) or asset.get('assetType') == FUNGIBLE_ASSET_TYPE:
            continue
        items = asset.get('collection')
        if not isinstance(items, list):
            continue
        collections += 1
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                nonce = int(item.get('nonce') or 0)
                balance = int(item.get('balance') or 0)
            except (TypeError, ValueError):
                logger.warning(f"Skipping malformed holding in {collection_id}: {item!r}")
                continue
            if balance > 0 and nonce >= 0:
                holdings.append((collection_id, nonce, balance))
    return holdings, collections

class AssetManager:
    """Resolves the NFTs an address holds"""

    def __init__(self, proxy: Optional[KleverProxy] = None, fetcher: Optional[MetadataFetcher] = None):
        self.proxy = proxy if proxy is not None else default_client
        self.fetcher = fetcher if fetcher is not None else MetadataFetcher(self.proxy)

    async def get_user_assets(self, network: str, address: str) -> UserAssets:
        """Get every NFT/SFT unit held by ``address``.

        Args:
            network: Network name
            address: Klever account address

        Returns:
            UserAssets with one Asset per held unit and ownership stats

        Raises:
            AssetError: If the address is empty
            ProxyError: If the account cannot be fetched
            NetworkConfigError: If the network is unknown
        """
        address = (address or '').strip()
        if not address:
            raise AssetError("Address is required")
        network = (network or '').strip().lower()

        holdings, collections = _holdings_of(await self.proxy.get_account(network, address))
        logger.debug(f"Found {len(holdings)} NFTs for {address} on {network}, fetching metadata")

        metadata = await self.fetcher.fetch_many(
            network, [(collection_id, nonce) for collection_id, nonce, _ in holdings]
        )

        assets = []
        for (collection_id, nonce, balance), meta in zip(holdings, metadata):
            base_name = (meta.display_name if meta else None) or collection_id
            assets.append(Asset(
                collection_id=collection_id,
                index=nonce,
                name=f"{base_name} #{nonce}",
                image_url=resolve_image_url(meta.uris, meta.logo) if meta else None,
                creator=(meta.creator_address or '') if meta else '',
                owner=address,
                royalty_bps=meta.royalty_bps if meta else 0,
                balance=balance,
            ))

        return UserAssets(
            address=address,
            assets=assets,
            stats=UserAssetStats(total_owned=len(assets), collections=collections),
        )

__all__ = ['AssetManager', 'AssetError']
