"""Marketplace core.

This package provides:
- Public listings for direct sale and auction
- Ascending auctions with escrowed bids
- Invite-only private sales
- Creator registrations and tips
- Operator fees on every value transfer

All operations go through ``Marketplace``, which wires the components to one
shared state, escrow coordinator, clock, lock table and event stream.
"""
from typing import List, Optional

from .auctions import AuctionEngine
from .context import MarketContext, StateSink
from .creators import CreatorMonetization
from .errors import (
    BidTooLowError,
    ConflictError,
    DeadlineNotReachedError,
    DeadlinePassedError,
    EscrowError,
    InsufficientFundsError,
    InvalidParameterError,
    MarketError,
    NotApprovedError,
    NotFoundError,
    UnauthorizedError,
)
from .escrow import EscrowCoordinator
from .events import EventBus, MarketEvent
from .fees import BASIS_POINTS, DEFAULT_FEE_BPS, FeeCalculator, FeeSplit
from .interfaces import AssetRegistry, Clock, FungibleLedger, SystemClock
from .items import MarketItemStore
from .locks import KeyedLock
from .models import MarketItem, PrivateMarketItem, Registration
from .private import PrivateSaleStore
from .state import MarketState, StateChanges


class Marketplace:
    """Entry point for every marketplace operation and view."""

    def __init__(
        self,
        registry: AssetRegistry,
        ledger: FungibleLedger,
        marketplace_address: str,
        fee_address: str,
        fee_bps: int = DEFAULT_FEE_BPS,
        clock: Optional[Clock] = None,
        state: Optional[MarketState] = None,
        store: Optional[StateSink] = None,
        events: Optional[EventBus] = None
    ) -> None:
        """Initialize the marketplace.

        Args:
            registry: Asset ownership registry
            ledger: Fungible-value ledger
            marketplace_address: Account holding escrowed assets and funds
            fee_address: Operator account receiving fees
            fee_bps: Operator fee in basis points
            clock: Time source, defaults to the system clock
            state: Preloaded state, defaults to an empty one
            store: Persistence boundary flushed on every commit
            events: Event stream, defaults to a fresh one
        """
        self.fees = FeeCalculator(fee_bps)
        self.escrow = EscrowCoordinator(
            registry=registry,
            ledger=ledger,
            marketplace_address=marketplace_address,
            fee_address=fee_address,
            fees=self.fees
        )
        self.ctx = MarketContext(
            state=state or MarketState(),
            escrow=self.escrow,
            events=events or EventBus(),
            clock=clock or SystemClock(),
            store=store
        )
        self.items = MarketItemStore(self.ctx)
        self.auctions = AuctionEngine(self.ctx)
        self.private = PrivateSaleStore(self.ctx)
        self.creators = CreatorMonetization(self.ctx)

    @property
    def state(self) -> MarketState:
        return self.ctx.state

    @property
    def events(self) -> EventBus:
        return self.ctx.events

    @property
    def fee_address(self) -> str:
        return self.escrow.fee_address

    @property
    def default_fee(self) -> int:
        return self.fees.rate_bps

    @property
    def marketplace_address(self) -> str:
        return self.escrow.marketplace_address

    # Public listings

    async def create_market_item(
        self,
        asset_collection: str,
        asset_id: int,
        price: int,
        currency: str,
        is_auction: bool,
        minimum_offer: int,
        auction_deadline: int,
        caller: str
    ) -> MarketItem:
        return await self.items.create_market_item(
            asset_collection, asset_id, price, currency,
            is_auction, minimum_offer, auction_deadline, caller
        )

    async def get_market_item(self, asset_id: int) -> MarketItem:
        return await self.items.get_market_item(asset_id)

    async def remove_market_item(self, asset_id: int, asset_collection: str, caller: str) -> MarketItem:
        return await self.items.remove_market_item(asset_id, asset_collection, caller)

    async def create_market_sale(self, asset_id: int, caller: str) -> MarketItem:
        return await self.items.create_market_sale(asset_id, caller)

    async def fetch_market_items(self) -> List[MarketItem]:
        return await self.items.fetch_market_items()

    async def fetch_my_listed_nfts(self, caller: str) -> List[MarketItem]:
        return await self.items.fetch_my_listed_nfts(caller)

    async def fetch_my_nfts(self, caller: str) -> List[MarketItem]:
        return await self.items.fetch_my_nfts(caller)

    # Auctions

    async def bid(self, asset_id: int, amount: int, caller: str) -> MarketItem:
        return await self.auctions.bid(asset_id, amount, caller)

    async def bid_increase(self, asset_id: int, increment: int, caller: str) -> MarketItem:
        return await self.auctions.bid_increase(asset_id, increment, caller)

    async def revoke_bid(self, asset_id: int, caller: str) -> MarketItem:
        return await self.auctions.revoke_bid(asset_id, caller)

    async def cancel_auction(self, asset_id: int, caller: str) -> MarketItem:
        return await self.auctions.cancel_auction(asset_id, caller)

    async def close_auction(self, asset_id: int, caller: str) -> MarketItem:
        return await self.auctions.close_auction(asset_id, caller)

    # Private sales

    async def create_private_market_item(
        self,
        asset_collection: str,
        asset_id: int,
        price: int,
        currency: str,
        invited_buyer: str,
        caller: str
    ) -> PrivateMarketItem:
        return await self.private.create_private_market_item(
            asset_collection, asset_id, price, currency, invited_buyer, caller
        )

    async def get_private_market_item(self, asset_id: int) -> PrivateMarketItem:
        return await self.private.get_private_market_item(asset_id)

    async def remove_private_market_item(
        self,
        asset_id: int,
        asset_collection: str,
        caller: str
    ) -> PrivateMarketItem:
        return await self.private.remove_private_market_item(asset_id, asset_collection, caller)

    async def create_private_market_sale(self, asset_id: int, caller: str) -> PrivateMarketItem:
        return await self.private.create_private_market_sale(asset_id, caller)

    async def fetch_my_private_market_items(self, caller: str) -> List[PrivateMarketItem]:
        return await self.private.fetch_my_private_market_items(caller)

    async def fetch_my_private_listed_items(self, caller: str) -> List[PrivateMarketItem]:
        return await self.private.fetch_my_private_listed_items(caller)

    async def fetch_my_private_nfts(self, caller: str) -> List[PrivateMarketItem]:
        return await self.private.fetch_my_private_nfts(caller)

    # Creators

    async def register(self, price: int, creator: str, expiry: int, currency: str, caller: str) -> Registration:
        return await self.creators.register(price, creator, expiry, currency, caller)

    async def tip(self, amount: int, creator: str, currency: str, caller: str) -> int:
        return await self.creators.tip(amount, creator, currency, caller)

    async def fetch_my_registrations(self, caller: str) -> List[Registration]:
        return await self.creators.fetch_my_registrations(caller)


# Export public interface
__all__ = [
    'Marketplace',
    'MarketContext',
    'MarketState',
    'StateChanges',
    'MarketItem',
    'PrivateMarketItem',
    'Registration',
    'MarketItemStore',
    'AuctionEngine',
    'PrivateSaleStore',
    'CreatorMonetization',
    'EscrowCoordinator',
    'FeeCalculator',
    'FeeSplit',
    'BASIS_POINTS',
    'DEFAULT_FEE_BPS',
    'EventBus',
    'MarketEvent',
    'KeyedLock',
    'AssetRegistry',
    'FungibleLedger',
    'Clock',
    'SystemClock',
    'MarketError',
    'NotFoundError',
    'UnauthorizedError',
    'InvalidParameterError',
    'BidTooLowError',
    'ConflictError',
    'DeadlineNotReachedError',
    'DeadlinePassedError',
    'InsufficientFundsError',
    'NotApprovedError',
    'EscrowError',
]
