"""Marketplace activity API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from activity import ActivityManager, ACTIVITY_FILTERS
from models import ActivityPage
from ..dependencies import get_activity_manager, resolve_network, raise_for_error

router = APIRouter(
    prefix="/activity",
    tags=["Activity"]
)

@router.get("", response_model=ActivityPage)
async def list_activity(
    network: str = Depends(resolve_network),
    activity_type: str = Query("all", alias="type", description=f"One of: {', '.join(ACTIVITY_FILTERS)}"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100, description="Records per type, activity_page_size by default"),
    manager: ActivityManager = Depends(get_activity_manager)
):
    """Get recent sales, listings and cancellations, most recent first."""
    result = await manager.fetch(network, activity_type, page=page, limit=limit)
    raise_for_error(result.error, result.error_kind)
    return result
