"""Record types held by the marketplace state."""
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class MarketItem(BaseModel):
    """A public listing, direct sale or auction, keyed by asset id.

    ``owner`` stays ``None`` while the listing is active. Once the listing
    settles or is withdrawn the record is kept with ``owner`` populated.
    """
    asset_collection: str
    asset_id: int
    price: int = Field(ge=0)
    currency: str
    is_auction: bool = False
    offeror: str
    owner: Optional[str] = None
    minimum_offer: int = Field(default=0, ge=0)
    auction_deadline: int = Field(default=0, ge=0)
    current_bidder: Optional[str] = None
    locked_bid: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def check_auction_fields(self) -> 'MarketItem':
        if not self.is_auction and (self.minimum_offer or self.auction_deadline):
            raise ValueError("direct sales carry no minimum offer or auction deadline")
        if (self.locked_bid > 0) != (self.current_bidder is not None):
            raise ValueError("locked bid and current bidder must be set together")
        return self

    @property
    def active(self) -> bool:
        return self.owner is None

    @property
    def has_bid(self) -> bool:
        return self.locked_bid > 0


class PrivateMarketItem(BaseModel):
    """A listing only ``invited_buyer`` may purchase."""
    asset_collection: str
    asset_id: int
    price: int = Field(ge=0)
    currency: str
    offeror: str
    owner: Optional[str] = None
    invited_buyer: str

    @property
    def active(self) -> bool:
        return self.owner is None


class Registration(BaseModel):
    """A paid, time-boxed subscription of ``owner`` to ``creator``."""
    owner: str
    creator: str
    price: int
    currency: str
    expiry: int

    def is_live(self, now: int) -> bool:
        return self.expiry > now


__all__ = ['MarketItem', 'PrivateMarketItem', 'Registration']
