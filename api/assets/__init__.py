"""Account asset API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from assets import AssetManager, AssetError
from models import UserAssets
from proxy import ProxyError
from ..dependencies import get_asset_manager, resolve_network, HTTP_STATUS

router = APIRouter(
    prefix="/assets",
    tags=["Assets"]
)

@router.get("/{address}", response_model=UserAssets)
async def get_user_assets(
    address: str,
    network: str = Depends(resolve_network),
    manager: AssetManager = Depends(get_asset_manager)
):
    """Get the NFTs held by an address."""
    try:
        return await manager.get_user_assets(network, address)
    except AssetError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ProxyError as e:
        raise HTTPException(status_code=HTTP_STATUS[e.kind], detail=str(e))
