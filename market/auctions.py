"""Ascending auctions running on the bid fields of a public listing."""
import logging

from .context import MarketContext
from .errors import (
    BidTooLowError,
    ConflictError,
    DeadlineNotReachedError,
    DeadlinePassedError,
    InvalidParameterError,
    NotFoundError,
    UnauthorizedError,
)
from .events import BidUpdated, MarketItemSold, OfferUpdated, Traded
from .models import MarketItem
from .state import StateChanges

logger = logging.getLogger(__name__)


class AuctionEngine:
    """Bid, raise, revoke, cancel and close for auction listings.

    Deadlines are checked lazily against the context clock: bidding is open
    while ``now < auction_deadline`` and settlement is possible from
    ``auction_deadline`` on.
    """

    def __init__(self, ctx: MarketContext) -> None:
        self.ctx = ctx

    def _get_auction(self, asset_id: int, action: str) -> MarketItem:
        item = self.ctx.state.get_market_item(asset_id)
        if item is None:
            raise NotFoundError(f"asset id {asset_id} not found in the market")
        if not item.active:
            raise ConflictError(f"asset {asset_id} is no longer listed")
        if not item.is_auction:
            raise ConflictError(f"{action}: asset {asset_id} is not auctionable")
        return item

    def _require_open(self, item: MarketItem, action: str) -> None:
        if self.ctx.now() >= item.auction_deadline:
            raise DeadlinePassedError(f"{action}: auction period is over for asset {item.asset_id}")

    async def _store(self, updated: MarketItem, events: list) -> MarketItem:
        changes = StateChanges()
        self.ctx.state.put_market_item(updated, changes)
        await self.ctx.commit(changes, events)
        return updated.model_copy()

    async def bid(self, asset_id: int, amount: int, caller: str) -> MarketItem:
        """Place a bid above the reserve or the current locked bid.

        The new amount is locked in escrow and the previous bidder gets back
        exactly their locked bid. When the current bidder outbids themselves
        only the difference is pulled.

        Raises:
            ConflictError: If the listing is not an active auction
            DeadlinePassedError: If the auction is over
            BidTooLowError: If amount does not beat the reserve or locked bid
            InsufficientFundsError: If the bidder cannot cover the bid
        """
        async with self.ctx.locks.hold(asset_id):
            item = self._get_auction(asset_id, "bid")
            self._require_open(item, "bid")
            if item.current_bidder is None:
                if amount <= item.minimum_offer:
                    raise BidTooLowError(amount, item.minimum_offer)
            elif amount <= item.locked_bid:
                raise BidTooLowError(amount, item.locked_bid, "Bid lower than the highest bid")

            previous_bidder = item.current_bidder
            previous_bid = item.locked_bid
            escrow = self.ctx.escrow
            if previous_bidder == caller:
                escrow.require_funds(caller, amount - previous_bid, item.currency)
                with escrow.transaction() as tx:
                    tx.collect(caller, amount - previous_bid, item.currency)
            else:
                escrow.require_funds(caller, amount, item.currency)
                with escrow.transaction() as tx:
                    tx.collect(caller, amount, item.currency)
                    if previous_bidder is not None:
                        tx.pay(previous_bidder, previous_bid, item.currency)

            updated = item.model_copy(update={'current_bidder': caller, 'locked_bid': amount})
            if previous_bidder is not None and previous_bidder != caller:
                logger.info(f"Refunded {previous_bid} {item.currency} to outbid bidder {previous_bidder}")
            logger.info(f"Bid of {amount} {item.currency} on asset {asset_id} by {caller}")
            return await self._store(updated, [
                BidUpdated(asset_id=asset_id, bidder=caller, locked_bid=amount)
            ])

    async def bid_increase(self, asset_id: int, increment: int, caller: str) -> MarketItem:
        """Add ``increment`` to the caller's locked bid.

        Raises:
            UnauthorizedError: If caller is not the current bidder
            InvalidParameterError: If increment is not positive
            DeadlinePassedError: If the auction is over
        """
        async with self.ctx.locks.hold(asset_id):
            item = self._get_auction(asset_id, "bidIncrease")
            if item.current_bidder is None or caller != item.current_bidder:
                raise UnauthorizedError("bidIncrease: you are not the current bidder")
            if increment <= 0:
                raise InvalidParameterError("bidIncrease: must send value to increase bid")
            self._require_open(item, "bidIncrease")
            self.ctx.escrow.require_funds(caller, increment, item.currency)

            with self.ctx.escrow.transaction() as tx:
                tx.collect(caller, increment, item.currency)

            total = item.locked_bid + increment
            updated = item.model_copy(update={'locked_bid': total})
            logger.info(f"Bid on asset {asset_id} raised by {increment} to {total} {item.currency}")
            return await self._store(updated, [
                BidUpdated(asset_id=asset_id, bidder=caller, locked_bid=total)
            ])

    async def revoke_bid(self, asset_id: int, caller: str) -> MarketItem:
        """Withdraw the caller's bid and refund it in full.

        Raises:
            UnauthorizedError: If caller is not the current bidder
            DeadlinePassedError: If the auction is over
        """
        async with self.ctx.locks.hold(asset_id):
            item = self._get_auction(asset_id, "revokeBid")
            if item.current_bidder is None or caller != item.current_bidder:
                raise UnauthorizedError("revokeBid: only the bidder may revoke their bid")
            self._require_open(item, "revokeBid")

            with self.ctx.escrow.transaction() as tx:
                tx.pay(caller, item.locked_bid, item.currency)

            updated = item.model_copy(update={'current_bidder': None, 'locked_bid': 0})
            logger.info(f"Bid of {item.locked_bid} on asset {asset_id} revoked by {caller}")
            return await self._store(updated, [
                BidUpdated(asset_id=asset_id, bidder=None, locked_bid=0)
            ])

    async def cancel_auction(self, asset_id: int, caller: str) -> MarketItem:
        """Cancel a running auction, refunding any bid and returning the asset.

        Raises:
            UnauthorizedError: If caller is not the offeror
            DeadlinePassedError: If the auction is already over
            EscrowError: If the refund went out but the asset could not be
                         returned; the cancellation is recorded regardless
        """
        async with self.ctx.locks.hold(asset_id):
            item = self._get_auction(asset_id, "cancelAuction")
            if caller != item.offeror:
                raise UnauthorizedError("cancelAuction: only the offeror can cancel an auction")
            if self.ctx.now() >= item.auction_deadline:
                raise DeadlinePassedError("cancelAuction: auction already over, cannot cancel")

            with self.ctx.escrow.transaction() as tx:
                if item.has_bid:
                    tx.pay(item.current_bidder, item.locked_bid, item.currency)
                tx.release_asset(item.asset_collection, asset_id, item.offeror)

            updated = item.model_copy(update={
                'owner': item.offeror,
                'current_bidder': None,
                'locked_bid': 0
            })
            logger.info(f"Auction on asset {asset_id} cancelled by {caller}")
            cancelled = await self._store(updated, [
                OfferUpdated(asset_id=asset_id, offeror=None, minimum_offer=0, invited_bidder=None)
            ])
            tx.raise_for_failures()
            return cancelled

    async def close_auction(self, asset_id: int, caller: str) -> MarketItem:
        """Settle an auction once its deadline has passed.

        The locked bid is split between operator and offeror and the asset
        goes to the winning bidder. Emits ``Traded``, ``BidUpdated`` and
        ``MarketItemSold`` in that order.

        Raises:
            UnauthorizedError: If caller is not the offeror
            DeadlineNotReachedError: If the auction is still running
            ConflictError: If there is no bid to settle
            EscrowError: If settlement started but a payout or the release
                         failed; the close is recorded regardless
        """
        async with self.ctx.locks.hold(asset_id):
            item = self._get_auction(asset_id, "closeAuction")
            if caller != item.offeror:
                raise UnauthorizedError("closeAuction: only the offeror can close an auction")
            if self.ctx.now() < item.auction_deadline:
                raise DeadlineNotReachedError("closeAuction: auction still running")
            if not item.has_bid:
                raise ConflictError("closeAuction: no bid to settle")

            winner = item.current_bidder
            value = item.locked_bid
            with self.ctx.escrow.transaction() as tx:
                split = tx.settle(item.offeror, value, item.currency)
                tx.release_asset(item.asset_collection, asset_id, winner)

            updated = item.model_copy(update={
                'owner': winner,
                'current_bidder': None,
                'locked_bid': 0
            })
            logger.info(
                f"Auction on asset {asset_id} closed: {winner} wins at {value} "
                f"{item.currency} (fee {split.fee})"
            )
            closed = await self._store(updated, [
                Traded(asset_id=asset_id, value=value, offeror=item.offeror, bidder=winner),
                BidUpdated(asset_id=asset_id, bidder=None, locked_bid=0),
                MarketItemSold(owner=item.offeror, buyer=winner, asset_id=asset_id),
            ])
            tx.raise_for_failures()
            return closed
