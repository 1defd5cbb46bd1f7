"""Shared API dependencies: managers, network resolution and error mapping."""
from typing import Optional

from fastapi import HTTPException, Query, status

from activity import ActivityManager
from assets import AssetManager
from config import settings_conf, get_network_config, NetworkConfigError
from listings import ListingManager
from metadata import MetadataFetcher
from models import ErrorKind
from proxy import client as proxy_client

# Error kind -> HTTP status
HTTP_STATUS = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UPSTREAM_UNAVAILABLE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.MALFORMED_RESPONSE: status.HTTP_502_BAD_GATEWAY,
}

_fetcher: Optional[MetadataFetcher] = None
_listing_manager: Optional[ListingManager] = None
_activity_manager: Optional[ActivityManager] = None
_asset_manager: Optional[AssetManager] = None

def _get_fetcher() -> MetadataFetcher:
    global _fetcher
    if _fetcher is None:
        _fetcher = MetadataFetcher(proxy_client)
    return _fetcher

def get_listing_manager() -> ListingManager:
    global _listing_manager
    if _listing_manager is None:
        _listing_manager = ListingManager(proxy_client, _get_fetcher())
    return _listing_manager

def get_activity_manager() -> ActivityManager:
    global _activity_manager
    if _activity_manager is None:
        _activity_manager = ActivityManager(proxy_client)
    return _activity_manager

def get_asset_manager() -> AssetManager:
    global _asset_manager
    if _asset_manager is None:
        _asset_manager = AssetManager(proxy_client, _get_fetcher())
    return _asset_manager

def resolve_network(
    network: Optional[str] = Query(None, description="Network name, e.g. mainnet or testnet")
) -> str:
    """Resolve the ``network`` query parameter, defaulting to ``default_network``."""
    name = (network or settings_conf['default_network']).strip().lower()
    try:
        get_network_config(name)
    except NetworkConfigError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return name

def raise_for_error(error: Optional[str], error_kind: Optional[ErrorKind]):
    """Raise the HTTPException matching an error page, if it carries an error."""
    if error:
        raise HTTPException(
            status_code=HTTP_STATUS.get(error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=error
        )
