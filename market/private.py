"""Invite-only listings purchasable by a single named buyer."""
import logging
from typing import List

from .context import MarketContext
from .errors import (
    ConflictError,
    InvalidParameterError,
    NotFoundError,
    UnauthorizedError,
)
from .events import MarketItemRemoved, MarketItemSold, PrivateMarketItemCreated
from .items import check_listable
from .models import PrivateMarketItem
from .state import StateChanges

logger = logging.getLogger(__name__)


class PrivateSaleStore:
    """Lifecycle of private listings, parallel to ``MarketItemStore``."""

    def __init__(self, ctx: MarketContext) -> None:
        self.ctx = ctx

    def _get(self, asset_id: int) -> PrivateMarketItem:
        item = self.ctx.state.get_private_item(asset_id)
        if item is None:
            raise NotFoundError(f"asset id {asset_id} not found in the private market")
        return item

    def _get_active(self, asset_id: int) -> PrivateMarketItem:
        item = self._get(asset_id)
        if not item.active:
            raise ConflictError(f"asset {asset_id} is no longer privately listed")
        return item

    async def create_private_market_item(
        self,
        asset_collection: str,
        asset_id: int,
        price: int,
        currency: str,
        invited_buyer: str,
        caller: str
    ) -> PrivateMarketItem:
        """List an asset that only ``invited_buyer`` may buy.

        Raises:
            InvalidParameterError: On bad price or a missing/self invitation
            ConflictError: If the asset is already listed
            UnauthorizedError: If caller does not own the asset
            NotApprovedError: If the marketplace is not an approved custodian
        """
        async with self.ctx.locks.hold(asset_id):
            if not invited_buyer:
                raise InvalidParameterError("an invited buyer is required")
            if invited_buyer == caller:
                raise InvalidParameterError("cannot invite yourself to a private sale")
            check_listable(self.ctx, asset_collection, asset_id, price, caller)

            item = PrivateMarketItem(
                asset_collection=asset_collection,
                asset_id=asset_id,
                price=price,
                currency=currency,
                offeror=caller,
                invited_buyer=invited_buyer
            )
            with self.ctx.escrow.transaction() as tx:
                tx.take_asset(asset_collection, asset_id, caller)

            changes = StateChanges()
            self.ctx.state.put_private_item(item, changes)
            logger.info(
                f"Privately listed asset {asset_id} ({asset_collection}) by {caller} "
                f"for {invited_buyer} at {price} {currency}"
            )
            await self.ctx.commit(changes, [
                PrivateMarketItemCreated(
                    asset_collection=asset_collection,
                    asset_id=asset_id,
                    offeror=caller,
                    owner=None,
                    price=price,
                    currency=currency,
                    invited_buyer=invited_buyer
                )
            ])
            return item.model_copy()

    async def get_private_market_item(self, asset_id: int) -> PrivateMarketItem:
        return self._get(asset_id).model_copy()

    async def remove_private_market_item(
        self,
        asset_id: int,
        asset_collection: str,
        caller: str
    ) -> PrivateMarketItem:
        """Withdraw a private listing and return the asset to its offeror."""
        async with self.ctx.locks.hold(asset_id):
            item = self._get_active(asset_id)
            if caller != item.offeror:
                raise UnauthorizedError("removePrivateMarketItem: you are not the offeror of the asset")
            if asset_collection != item.asset_collection:
                raise InvalidParameterError(
                    f"asset {asset_id} is listed under {item.asset_collection}, not {asset_collection}"
                )

            with self.ctx.escrow.transaction() as tx:
                tx.release_asset(item.asset_collection, asset_id, item.offeror)

            updated = item.model_copy(update={'owner': item.offeror})
            changes = StateChanges()
            self.ctx.state.put_private_item(updated, changes)
            logger.info(f"Removed private listing of asset {asset_id}, returned to {item.offeror}")
            await self.ctx.commit(changes, [
                MarketItemRemoved(asset_collection=item.asset_collection, asset_id=asset_id)
            ])
            return updated.model_copy()

    async def create_private_market_sale(self, asset_id: int, caller: str) -> PrivateMarketItem:
        """Buy a private listing; only the invited buyer may do so.

        Raises:
            UnauthorizedError: If caller is not the invited buyer
            InsufficientFundsError: If the buyer cannot cover the price
            EscrowError: If a payout or the release failed; once a payout
                         has gone out the sale is recorded regardless
        """
        async with self.ctx.locks.hold(asset_id):
            item = self._get_active(asset_id)
            if caller != item.invited_buyer:
                raise UnauthorizedError("createPrivateMarketSale: you are not the invited buyer")
            self.ctx.escrow.require_funds(caller, item.price, item.currency)

            with self.ctx.escrow.transaction() as tx:
                tx.collect(caller, item.price, item.currency)
                split = tx.settle(item.offeror, item.price, item.currency)
                tx.release_asset(item.asset_collection, asset_id, caller)

            updated = item.model_copy(update={'owner': caller})
            changes = StateChanges()
            self.ctx.state.put_private_item(updated, changes)
            logger.info(
                f"Privately sold asset {asset_id} from {item.offeror} to {caller} for "
                f"{item.price} {item.currency} (fee {split.fee})"
            )
            await self.ctx.commit(changes, [
                MarketItemSold(owner=item.offeror, buyer=caller, asset_id=asset_id)
            ])
            tx.raise_for_failures()
            return updated.model_copy()

    async def fetch_my_private_market_items(self, caller: str) -> List[PrivateMarketItem]:
        """Active private listings ``caller`` is invited to buy."""
        return [
            item.model_copy()
            for item in self.ctx.state.private_items.values()
            if item.active and item.invited_buyer == caller
        ]

    async def fetch_my_private_listed_items(self, caller: str) -> List[PrivateMarketItem]:
        """Active private listings offered by ``caller``."""
        return [
            item.model_copy()
            for item in self.ctx.state.private_items.values()
            if item.active and item.offeror == caller
        ]

    async def fetch_my_private_nfts(self, caller: str) -> List[PrivateMarketItem]:
        """Privately listed assets whose live registry owner is ``caller``."""
        state = self.ctx.state
        result = []
        for asset_id in state.private_listed_asset_ids:
            item = state.private_items[asset_id]
            if self.ctx.escrow.owner_of(item.asset_collection, asset_id) == caller:
                result.append(item.model_copy())
        return result
