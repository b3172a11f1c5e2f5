"""Explicit in-memory state of the marketplace.

``MarketState`` is the single source of truth while the service runs. It is
loaded once at startup through a ``StateStore`` and every committed operation
reports the records it touched as a ``StateChanges`` so the store can flush
them.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .models import MarketItem, PrivateMarketItem, Registration


class StateChanges(BaseModel):
    """Records written by a single committed operation."""
    market_items: List[MarketItem] = Field(default_factory=list)
    private_items: List[PrivateMarketItem] = Field(default_factory=list)
    registrations: List[Registration] = Field(default_factory=list)
    listed: List[MarketItem] = Field(default_factory=list)
    private_listed: List[PrivateMarketItem] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.market_items or self.private_items or self.registrations
            or self.listed or self.private_listed
        )


class MarketState:
    """Indexes of listings, listing history and registrations."""

    def __init__(self) -> None:
        self.market_items: Dict[int, MarketItem] = {}
        self.private_items: Dict[int, PrivateMarketItem] = {}
        # Every asset id ever listed, in first-listing order
        self.listed_asset_ids: List[int] = []
        self.private_listed_asset_ids: List[int] = []
        self.registrations: List[Registration] = []

    def is_listed(self, asset_id: int) -> bool:
        """True if the asset has an active public or private listing."""
        item = self.market_items.get(asset_id)
        if item is not None and item.active:
            return True
        private = self.private_items.get(asset_id)
        return private is not None and private.active

    def put_market_item(self, item: MarketItem, changes: StateChanges) -> None:
        if item.asset_id not in self.market_items:
            self.listed_asset_ids.append(item.asset_id)
            changes.listed.append(item)
        self.market_items[item.asset_id] = item
        changes.market_items.append(item)

    def put_private_item(self, item: PrivateMarketItem, changes: StateChanges) -> None:
        if item.asset_id not in self.private_items:
            self.private_listed_asset_ids.append(item.asset_id)
            changes.private_listed.append(item)
        self.private_items[item.asset_id] = item
        changes.private_items.append(item)

    def add_registration(self, registration: Registration, changes: StateChanges) -> None:
        self.registrations.append(registration)
        changes.registrations.append(registration)

    def get_market_item(self, asset_id: int) -> Optional[MarketItem]:
        return self.market_items.get(asset_id)

    def get_private_item(self, asset_id: int) -> Optional[PrivateMarketItem]:
        return self.private_items.get(asset_id)


__all__ = ['MarketState', 'StateChanges']
