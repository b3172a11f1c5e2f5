"""Public market endpoints for listing, buying and withdrawing items."""

from fastapi import APIRouter, Depends, Query, Security
from typing import List
from pydantic import BaseModel, Field

from auth import get_current_user
from market import Marketplace, MarketItem
from ..deps import get_marketplace

# Create router
router = APIRouter(
    prefix="/market",
    tags=["Market"]
)

class CreateMarketItemRequest(BaseModel):
    """Request model for listing an asset."""
    asset_collection: str
    asset_id: int
    price: int
    currency: str
    is_auction: bool = False
    minimum_offer: int = 0
    auction_deadline: int = Field(default=0, description="Unix timestamp in seconds")

@router.get("/items", response_model=List[MarketItem])
async def list_market_items(market: Marketplace = Depends(get_marketplace)):
    """Get all active public listings in listing order."""
    return await market.fetch_market_items()

@router.get("/items/{asset_id}", response_model=MarketItem)
async def get_market_item(asset_id: int, market: Marketplace = Depends(get_marketplace)):
    """Get a listing record, active or settled."""
    return await market.get_market_item(asset_id)

@router.post("/items", response_model=MarketItem, status_code=201)
async def create_market_item(
    request: CreateMarketItemRequest,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """List an owned asset for direct sale or auction."""
    return await market.create_market_item(
        request.asset_collection,
        request.asset_id,
        request.price,
        request.currency,
        request.is_auction,
        request.minimum_offer,
        request.auction_deadline,
        caller
    )

@router.delete("/items/{asset_id}", response_model=MarketItem)
async def remove_market_item(
    asset_id: int,
    asset_collection: str = Query(...),
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Withdraw an active listing and return the asset to the offeror."""
    return await market.remove_market_item(asset_id, asset_collection, caller)

@router.post("/items/{asset_id}/buy", response_model=MarketItem)
async def buy_market_item(
    asset_id: int,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Buy a fixed-price listing."""
    return await market.create_market_sale(asset_id, caller)

@router.get("/me/listed", response_model=List[MarketItem])
async def my_listed_items(
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Active listings offered by the caller."""
    return await market.fetch_my_listed_nfts(caller)

@router.get("/me/nfts", response_model=List[MarketItem])
async def my_items(
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Listing records of assets the caller currently owns."""
    return await market.fetch_my_nfts(caller)

__all__ = ['router']
