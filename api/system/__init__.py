"""System health and operator settings endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from market import Marketplace
from ..deps import get_marketplace

# Create router
router = APIRouter(
    prefix="/system",
    tags=["System"]
)

class SystemHealth(BaseModel):
    """Model for system health data."""
    status: str
    active_listings: int
    active_private_listings: int
    registrations: int
    events_published: int

class FeeSettings(BaseModel):
    """Operator fee configuration."""
    fee_address: str
    default_fee: int
    marketplace_address: str

@router.get("/health", response_model=SystemHealth)
async def get_system_health(market: Marketplace = Depends(get_marketplace)):
    """Get marketplace health and state counts."""
    state = market.state
    return SystemHealth(
        status="healthy",
        active_listings=sum(1 for item in state.market_items.values() if item.active),
        active_private_listings=sum(1 for item in state.private_items.values() if item.active),
        registrations=len(state.registrations),
        events_published=market.events.published
    )

@router.get("/fees", response_model=FeeSettings)
async def get_fee_settings(market: Marketplace = Depends(get_marketplace)):
    """Get the operator fee address and rate in basis points."""
    return FeeSettings(
        fee_address=market.fee_address,
        default_fee=market.default_fee,
        marketplace_address=market.marketplace_address
    )

__all__ = ['router']
