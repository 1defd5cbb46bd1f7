"""Listings API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional

from listings import ListingManager, ListingError
from models import Collection, CollectionDetail, Filter, ListingPage, SortOption
from proxy import ProxyError
from ..dependencies import get_listing_manager, resolve_network, raise_for_error, HTTP_STATUS

router = APIRouter(
    prefix="/listings",
    tags=["Listings"]
)

@router.get("", response_model=ListingPage)
async def list_listings(
    network: str = Depends(resolve_network),
    collection: Optional[str] = Query(None, description="Collection asset id"),
    min_price: Optional[int] = Query(None, ge=0, description="Minimum price in smallest units"),
    max_price: Optional[int] = Query(None, ge=0, description="Maximum price in smallest units"),
    search: Optional[str] = Query(None, description="Substring of the name or collection"),
    sort: Optional[SortOption] = Query(None),
    page: int = Query(1, ge=1),
    force: bool = Query(False, description="Bypass the cache"),
    manager: ListingManager = Depends(get_listing_manager)
):
    """Get one page of active listings."""
    filters = Filter(
        collection_id=collection,
        min_price=min_price,
        max_price=max_price,
        search=search,
        sort=sort,
    )
    result = await manager.list(network, filters, page, force=force)
    raise_for_error(result.error, result.error_kind)
    return result

@router.get("/collections", response_model=List[Collection])
async def list_collections(
    network: str = Depends(resolve_network),
    manager: ListingManager = Depends(get_listing_manager)
):
    """Get collections with active listings, cheapest floor first."""
    try:
        return await manager.get_collections(network)
    except ProxyError as e:
        raise HTTPException(status_code=HTTP_STATUS[e.kind], detail=str(e))

@router.get("/collections/{collection_id}", response_model=CollectionDetail)
async def get_collection(
    collection_id: str,
    network: str = Depends(resolve_network),
    manager: ListingManager = Depends(get_listing_manager)
):
    """Get a collection with its listings and stats."""
    try:
        return await manager.get_collection(network, collection_id)
    except ListingError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ProxyError as e:
        raise HTTPException(status_code=HTTP_STATUS[e.kind], detail=str(e))

