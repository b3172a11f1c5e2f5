"""Private sale endpoints."""

from fastapi import APIRouter, Depends, Query, Security
from typing import List
from pydantic import BaseModel

from auth import get_current_user
from market import Marketplace, PrivateMarketItem
from ..deps import get_marketplace

router = APIRouter(
    prefix="/private",
    tags=["Private sales"]
)

class CreatePrivateItemRequest(BaseModel):
    """Request model for an invite-only listing."""
    asset_collection: str
    asset_id: int
    price: int
    currency: str
    invited_buyer: str

@router.post("/items", response_model=PrivateMarketItem, status_code=201)
async def create_private_item(
    request: CreatePrivateItemRequest,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """List an owned asset for a single invited buyer."""
    return await market.create_private_market_item(
        request.asset_collection,
        request.asset_id,
        request.price,
        request.currency,
        request.invited_buyer,
        caller
    )

@router.get("/items/{asset_id}", response_model=PrivateMarketItem)
async def get_private_item(asset_id: int, market: Marketplace = Depends(get_marketplace)):
    return await market.get_private_market_item(asset_id)

@router.delete("/items/{asset_id}", response_model=PrivateMarketItem)
async def remove_private_item(
    asset_id: int,
    asset_collection: str = Query(...),
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Withdraw an active private listing."""
    return await market.remove_private_market_item(asset_id, asset_collection, caller)

@router.post("/items/{asset_id}/buy", response_model=PrivateMarketItem)
async def buy_private_item(
    asset_id: int,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Buy a private listing the caller was invited to."""
    return await market.create_private_market_sale(asset_id, caller)

@router.get("/me/invited", response_model=List[PrivateMarketItem])
async def my_invitations(
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    return await market.fetch_my_private_market_items(caller)

@router.get("/me/listed", response_model=List[PrivateMarketItem])
async def my_private_listings(
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    return await market.fetch_my_private_listed_items(caller)

@router.get("/me/nfts", response_model=List[PrivateMarketItem])
async def my_private_items(
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    return await market.fetch_my_private_nfts(caller)

__all__ = ['router']
