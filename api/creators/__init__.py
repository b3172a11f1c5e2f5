"""Creator registration and tipping endpoints."""

from fastapi import APIRouter, Depends, Security
from typing import List
from pydantic import BaseModel

from auth import get_current_user
from market import Marketplace, Registration
from ..deps import get_marketplace

router = APIRouter(
    prefix="/creators",
    tags=["Creators"]
)

class RegisterRequest(BaseModel):
    creator: str
    price: int
    currency: str
    expiry: int

class TipRequest(BaseModel):
    creator: str
    amount: int
    currency: str

class TipResponse(BaseModel):
    creator: str
    amount: int
    creator_amount: int
    currency: str

@router.post("/registrations", response_model=Registration, status_code=201)
async def register(
    request: RegisterRequest,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Pay a creator for a registration lasting until ``expiry``."""
    return await market.register(
        request.price, request.creator, request.expiry, request.currency, caller
    )

@router.post("/tips", response_model=TipResponse)
async def tip(
    request: TipRequest,
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """Tip a creator. The operator fee is withheld from the tip."""
    creator_amount = await market.tip(request.amount, request.creator, request.currency, caller)
    return TipResponse(
        creator=request.creator,
        amount=request.amount,
        creator_amount=creator_amount,
        currency=request.currency
    )

@router.get("/me/registrations", response_model=List[Registration])
async def my_registrations(
    caller: str = Security(get_current_user),
    market: Marketplace = Depends(get_marketplace)
):
    """The caller's registrations that have not yet expired."""
    return await market.fetch_my_registrations(caller)

__all__ = ['router']
