"""Public listings: direct sales and the listing side of auctions."""
import logging
from typing import List

from .context import MarketContext
from .errors import (
    ConflictError,
    InvalidParameterError,
    NotFoundError,
    UnauthorizedError,
)
from .events import MarketItemCreated, MarketItemRemoved, MarketItemSold, OfferUpdated
from .models import MarketItem
from .state import StateChanges

logger = logging.getLogger(__name__)


def check_listable(ctx: MarketContext, asset_collection: str, asset_id: int, price: int, caller: str) -> None:
    """Preconditions shared by public and private listings.

    Raises:
        InvalidParameterError: If price is not positive
        ConflictError: If the asset already has an active listing
        UnauthorizedError: If caller does not own the asset
        NotApprovedError: If the marketplace may not take custody
    """
    if price <= 0:
        raise InvalidParameterError("price must be greater than 0")
    if ctx.state.is_listed(asset_id):
        raise ConflictError(f"asset {asset_id} already has an active listing")
    ctx.escrow.require_owner(asset_collection, asset_id, caller)
    ctx.escrow.require_custody_approval(asset_collection, caller)


class MarketItemStore:
    """Lifecycle of public listings keyed by asset id."""

    def __init__(self, ctx: MarketContext) -> None:
        self.ctx = ctx

    def _get(self, asset_id: int) -> MarketItem:
        item = self.ctx.state.get_market_item(asset_id)
        if item is None:
            raise NotFoundError(f"asset id {asset_id} not found in the market")
        return item

    def _get_active(self, asset_id: int) -> MarketItem:
        item = self._get(asset_id)
        if not item.active:
            raise ConflictError(f"asset {asset_id} is no longer listed")
        return item

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
        """List an asset for direct sale or auction.

        The asset moves into marketplace custody. Auctions additionally need
        a reserve of at least one unit and a deadline in the future; for
        direct sales both are stored as 0.

        Returns:
            The new MarketItem

        Raises:
            InvalidParameterError: On bad price, reserve or deadline
            ConflictError: If the asset is already listed
            UnauthorizedError: If caller does not own the asset
            NotApprovedError: If the marketplace is not an approved custodian
        """
        async with self.ctx.locks.hold(asset_id):
            now = self.ctx.now()
            if is_auction:
                if minimum_offer < 1:
                    raise InvalidParameterError("minimum offer must be at least 1 unit")
                if auction_deadline <= now:
                    raise InvalidParameterError("auction deadline must be in the future")
            else:
                minimum_offer = 0
                auction_deadline = 0
            check_listable(self.ctx, asset_collection, asset_id, price, caller)

            item = MarketItem(
                asset_collection=asset_collection,
                asset_id=asset_id,
                price=price,
                currency=currency,
                is_auction=is_auction,
                offeror=caller,
                minimum_offer=minimum_offer,
                auction_deadline=auction_deadline
            )

            with self.ctx.escrow.transaction() as tx:
                tx.take_asset(asset_collection, asset_id, caller)

            changes = StateChanges()
            self.ctx.state.put_market_item(item, changes)
            events = [
                MarketItemCreated(
                    asset_collection=asset_collection,
                    asset_id=asset_id,
                    offeror=caller,
                    owner=None,
                    price=price,
                    currency=currency,
                    is_auction=is_auction,
                    minimum_offer=minimum_offer,
                    auction_deadline=auction_deadline
                )
            ]
            if is_auction:
                events.append(OfferUpdated(
                    asset_id=asset_id,
                    offeror=caller,
                    minimum_offer=minimum_offer,
                    invited_bidder=None
                ))
            logger.info(
                f"Listed asset {asset_id} ({asset_collection}) by {caller} "
                f"{'for auction' if is_auction else 'for sale'} at {price} {currency}"
            )
            await self.ctx.commit(changes, events)
            return item.model_copy()

    async def get_market_item(self, asset_id: int) -> MarketItem:
        """Get a listing by asset id, active or historical.

        Raises:
            NotFoundError: If the asset was never listed
        """
        return self._get(asset_id).model_copy()

    async def remove_market_item(self, asset_id: int, asset_collection: str, caller: str) -> MarketItem:
        """Withdraw a listing and return the asset to its offeror.

        Raises:
            NotFoundError: If the asset was never listed
            ConflictError: If the listing is inactive or an auction bid is locked
            UnauthorizedError: If caller is not the offeror
            InvalidParameterError: If the collection does not match the listing
        """
        async with self.ctx.locks.hold(asset_id):
            item = self._get_active(asset_id)
            if caller != item.offeror:
                raise UnauthorizedError("removeMarketItem: you are not the offeror of the asset")
            if asset_collection != item.asset_collection:
                raise InvalidParameterError(
                    f"asset {asset_id} is listed under {item.asset_collection}, not {asset_collection}"
                )
            if item.is_auction and item.has_bid:
                raise ConflictError(
                    f"removeMarketItem: a bid is locked on asset {asset_id}, "
                    "the bidder must revoke it before the item can be removed"
                )

            with self.ctx.escrow.transaction() as tx:
                tx.release_asset(item.asset_collection, asset_id, item.offeror)

            updated = item.model_copy(update={
                'owner': item.offeror,
                'current_bidder': None,
                'locked_bid': 0
            })
            changes = StateChanges()
            self.ctx.state.put_market_item(updated, changes)
            logger.info(f"Removed asset {asset_id} from the market, returned to {item.offeror}")
            await self.ctx.commit(changes, [
                MarketItemRemoved(asset_collection=item.asset_collection, asset_id=asset_id)
            ])
            return updated.model_copy()

    async def create_market_sale(self, asset_id: int, caller: str) -> MarketItem:
        """Buy a direct-sale listing at its price.

        The buyer pays ``price``; the operator receives the fee and the
        offeror the remainder; the asset goes to the buyer.

        Raises:
            NotFoundError: If the asset was never listed
            ConflictError: If the listing is inactive or an auction
            InsufficientFundsError: If the buyer cannot cover the price
            NotApprovedError: If the buyer has not approved the marketplace
            EscrowError: If a payout or the release failed; once a payout
                         has gone out the sale is recorded regardless
        """
        async with self.ctx.locks.hold(asset_id):
            item = self._get_active(asset_id)
            if item.is_auction:
                raise ConflictError(f"asset {asset_id} is listed for auction, not for direct sale")
            self.ctx.escrow.require_funds(caller, item.price, item.currency)

            with self.ctx.escrow.transaction() as tx:
                tx.collect(caller, item.price, item.currency)
                split = tx.settle(item.offeror, item.price, item.currency)
                tx.release_asset(item.asset_collection, asset_id, caller)

            updated = item.model_copy(update={'owner': caller})
            changes = StateChanges()
            self.ctx.state.put_market_item(updated, changes)
            logger.info(
                f"Sold asset {asset_id} from {item.offeror} to {caller} for {item.price} "
                f"{item.currency} (fee {split.fee})"
            )
            await self.ctx.commit(changes, [
                MarketItemSold(owner=item.offeror, buyer=caller, asset_id=asset_id)
            ])
            tx.raise_for_failures()
            return updated.model_copy()

    async def fetch_market_items(self) -> List[MarketItem]:
        """All active listings."""
        return [
            item.model_copy()
            for item in self.ctx.state.market_items.values()
            if item.active
        ]

    async def fetch_my_listed_nfts(self, caller: str) -> List[MarketItem]:
        """Active listings offered by ``caller``."""
        return [
            item.model_copy()
            for item in self.ctx.state.market_items.values()
            if item.active and item.offeror == caller
        ]

    async def fetch_my_nfts(self, caller: str) -> List[MarketItem]:
        """Every asset ever listed whose live registry owner is ``caller``.

        Ownership is read from the asset registry for each historical asset
        id, so assets that left the marketplace by any path are reported
        correctly.
        """
        state = self.ctx.state
        result = []
        for asset_id in state.listed_asset_ids:
            item = state.market_items[asset_id]
            if self.ctx.escrow.owner_of(item.asset_collection, asset_id) == caller:
                result.append(item.model_copy())
        return result
