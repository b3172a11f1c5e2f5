"""Auction endpoints."""

from fastapi import APIRouter, Depends, Security
from pydantic import BaseModel

from auth import get_current_user
from market import Marketplace, MarketItem
from ..deps import get_marketplace

router = APIRouter(
    prefix="/auctions",
    tags=["Auctions"]
)

class BidRequest(BaseModel):
    amount: int

class BidIncreaseRequest(BaseModel):
    increment: int

@router.post("/{asset_id}/bids", response_model=MarketItem)
async def place_bid(
    asset_id: int,
    request: BidRequest,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Place a bid, escrowing the amount and refunding the outbid bidder."""
    return await market.bid(asset_id, request.amount, caller)

@router.post("/{asset_id}/bids/increase", response_model=MarketItem)
async def increase_bid(
    asset_id: int,
    request: BidIncreaseRequest,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Raise the caller's standing bid."""
    return await market.bid_increase(asset_id, request.increment, caller)

@router.delete("/{asset_id}/bids", response_model=MarketItem)
async def revoke_bid(
    asset_id: int,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Withdraw the caller's standing bid."""
    return await market.revoke_bid(asset_id, caller)

@router.post("/{asset_id}/cancel", response_model=MarketItem)
async def cancel_auction(
    asset_id: int,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Cancel a running auction."""
    return await market.cancel_auction(asset_id, caller)

@router.post("/{asset_id}/close", response_model=MarketItem)
async def close_auction(
    asset_id: int,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Settle an auction whose deadline has passed."""
    return await market.close_auction(asset_id, caller)

__all__ = ['router']
