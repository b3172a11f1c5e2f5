"""Tests for ascending auctions."""

import asyncio

import pytest

from market import (
    BidTooLowError,
    ConflictError,
    DeadlineNotReachedError,
    DeadlinePassedError,
    EscrowError,
    InsufficientFundsError,
    InvalidParameterError,
    UnauthorizedError,
)

from conftest import ALICE, BOB, CAROL, COLLECTION, CURRENCY, DAY, ETHER, FEE, MARKET, START

DEADLINE = START + DAY
RESERVE = ETHER // 10

@pytest.fixture
def auction(marketplace, owned_asset):
    """Factory listing asset 1 of Alice for auction."""
    async def _create(asset_id=1, minimum_offer=RESERVE, deadline=DEADLINE):
        owned_asset(asset_id)
        return await marketplace.create_market_item(
            COLLECTION, asset_id, ETHER, CURRENCY, True, minimum_offer, deadline, ALICE
        )
    return _create

@pytest.mark.asyncio
async def test_create_auction(marketplace, registry, auction):
    item = await auction()

    assert item.is_auction
    assert item.minimum_offer == RESERVE
    assert item.auction_deadline == DEADLINE
    assert item.current_bidder is None
    assert item.locked_bid == 0
    assert registry.owner_of(COLLECTION, 1) == MARKET
    created, offer = marketplace.events.history
    assert created.name == 'MarketItemCreated'
    assert (offer.name, offer.offeror, offer.minimum_offer) == ('OfferUpdated', ALICE, RESERVE)

@pytest.mark.asyncio
async def test_auction_requires_reserve(auction):
    with pytest.raises(InvalidParameterError, match="minimum offer must be at least 1 unit"):
        await auction(minimum_offer=0)

@pytest.mark.asyncio
@pytest.mark.parametrize("deadline", [START, START - 1, 0])
async def test_auction_requires_future_deadline(auction, deadline):
    with pytest.raises(InvalidParameterError):
        await auction(deadline=deadline)

@pytest.mark.asyncio
async def test_bid_must_beat_reserve(marketplace, ledger, auction):
    await auction()
    ledger.fund(BOB, ETHER)

    with pytest.raises(BidTooLowError, match="Bid too low"):
        await marketplace.bid(1, RESERVE, BOB)

    assert ledger.balance_of(BOB, CURRENCY) == ETHER

@pytest.mark.asyncio
async def test_first_bid_is_escrowed(marketplace, ledger, auction):
    await auction()
    ledger.fund(BOB, ETHER)

    item = await marketplace.bid(1, ETHER // 2, BOB)

    assert item.current_bidder == BOB
    assert item.locked_bid == ETHER // 2
    assert ledger.balance_of(BOB, CURRENCY) == ETHER // 2
    assert ledger.balance_of(MARKET, CURRENCY) == ETHER // 2
    event = marketplace.events.history[-1]
    assert (event.name, event.bidder, event.locked_bid) == ('BidUpdated', BOB, ETHER // 2)

@pytest.mark.asyncio
async def test_outbid_bidder_is_refunded(marketplace, ledger, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    ledger.fund(CAROL, ETHER)
    await marketplace.bid(1, ETHER // 2, BOB)

    item = await marketplace.bid(1, ETHER * 3 // 4, CAROL)

    assert item.current_bidder == CAROL
    assert item.locked_bid == ETHER * 3 // 4
    assert ledger.balance_of(BOB, CURRENCY) == ETHER
    assert ledger.balance_of(CAROL, CURRENCY) == ETHER // 4
    assert ledger.balance_of(MARKET, CURRENCY) == ETHER * 3 // 4

@pytest.mark.asyncio
async def test_bid_must_beat_highest_bid(marketplace, ledger, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    ledger.fund(CAROL, ETHER)
    await marketplace.bid(1, ETHER // 2, BOB)

    with pytest.raises(BidTooLowError, match="Bid lower than the highest bid"):
        await marketplace.bid(1, ETHER // 2, CAROL)

    assert (await marketplace.get_market_item(1)).current_bidder == BOB

@pytest.mark.asyncio
async def test_rebid_by_current_bidder_pulls_difference(marketplace, ledger, auction):
    await auction()
    ledger.fund(BOB, 3 * ETHER)
    await marketplace.bid(1, ETHER, BOB)

    item = await marketplace.bid(1, 2 * ETHER, BOB)

    assert item.locked_bid == 2 * ETHER
    assert ledger.balance_of(BOB, CURRENCY) == ETHER
    assert ledger.balance_of(MARKET, CURRENCY) == 2 * ETHER

@pytest.mark.asyncio
async def test_bid_with_insufficient_funds(marketplace, ledger, auction):
    await auction()
    ledger.fund(BOB, RESERVE)

    with pytest.raises(InsufficientFundsError):
        await marketplace.bid(1, ETHER, BOB)

    assert (await marketplace.get_market_item(1)).current_bidder is None

@pytest.mark.asyncio
async def test_bid_on_direct_sale_rejected(marketplace, ledger, owned_asset):
    owned_asset(1)
    ledger.fund(BOB, ETHER)
    await marketplace.create_market_item(COLLECTION, 1, ETHER, CURRENCY, False, 0, 0, ALICE)

    with pytest.raises(ConflictError, match="bid: asset 1 is not auctionable"):
        await marketplace.bid(1, ETHER, BOB)
    with pytest.raises(ConflictError, match="closeAuction: asset 1 is not auctionable"):
        await marketplace.close_auction(1, ALICE)
    with pytest.raises(ConflictError, match="cancelAuction: asset 1 is not auctionable"):
        await marketplace.cancel_auction(1, ALICE)

@pytest.mark.asyncio
@pytest.mark.parametrize("elapsed", [DAY, DAY + 1])
async def test_bid_after_deadline(marketplace, ledger, clock, auction, elapsed):
    await auction()
    ledger.fund(BOB, ETHER)
    clock.advance(elapsed)

    with pytest.raises(DeadlinePassedError):
        await marketplace.bid(1, ETHER // 2, BOB)

@pytest.mark.asyncio
async def test_bid_increase(marketplace, ledger, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER // 2, BOB)

    item = await marketplace.bid_increase(1, ETHER // 4, BOB)

    assert item.locked_bid == ETHER * 3 // 4
    assert ledger.balance_of(MARKET, CURRENCY) == ETHER * 3 // 4
    assert marketplace.events.history[-1].locked_bid == ETHER * 3 // 4

@pytest.mark.asyncio
async def test_bid_increase_checks(marketplace, ledger, clock, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    ledger.fund(CAROL, ETHER)

    with pytest.raises(UnauthorizedError):
        await marketplace.bid_increase(1, ETHER // 4, BOB)

    await marketplace.bid(1, ETHER // 2, BOB)
    with pytest.raises(UnauthorizedError):
        await marketplace.bid_increase(1, ETHER // 4, CAROL)
    with pytest.raises(InvalidParameterError):
        await marketplace.bid_increase(1, 0, BOB)

    clock.advance(DAY)
    with pytest.raises(DeadlinePassedError):
        await marketplace.bid_increase(1, ETHER // 4, BOB)

@pytest.mark.asyncio
async def test_revoke_bid(marketplace, ledger, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER // 2, BOB)

    item = await marketplace.revoke_bid(1, BOB)

    assert item.current_bidder is None
    assert item.locked_bid == 0
    assert ledger.balance_of(BOB, CURRENCY) == ETHER
    assert ledger.balance_of(MARKET, CURRENCY) == 0
    event = marketplace.events.history[-1]
    assert (event.name, event.bidder, event.locked_bid) == ('BidUpdated', None, 0)

@pytest.mark.asyncio
async def test_revoke_bid_only_by_bidder(marketplace, ledger, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER // 2, BOB)

    with pytest.raises(UnauthorizedError):
        await marketplace.revoke_bid(1, CAROL)

@pytest.mark.asyncio
async def test_cancel_auction_refunds_and_returns_asset(marketplace, registry, ledger, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER // 2, BOB)

    item = await marketplace.cancel_auction(1, ALICE)

    assert item.owner == ALICE
    assert item.locked_bid == 0
    assert registry.owner_of(COLLECTION, 1) == ALICE
    assert ledger.balance_of(BOB, CURRENCY) == ETHER
    assert await marketplace.fetch_market_items() == []
    event = marketplace.events.history[-1]
    assert (event.name, event.offeror, event.minimum_offer) == ('OfferUpdated', None, 0)

@pytest.mark.asyncio
async def test_cancel_auction_checks(marketplace, clock, auction):
    await auction()

    with pytest.raises(UnauthorizedError):
        await marketplace.cancel_auction(1, BOB)

    clock.advance(DAY)
    with pytest.raises(DeadlinePassedError, match="cancelAuction: auction already over, cannot cancel"):
        await marketplace.cancel_auction(1, ALICE)

@pytest.mark.asyncio
async def test_close_auction(marketplace, registry, ledger, clock, auction):
    """Test settling an auction pays the offeror and hands over the asset."""
    await auction()
    ledger.fund(BOB, 2 * ETHER)
    await marketplace.bid(1, 2 * ETHER, BOB)
    clock.advance(DAY)

    item = await marketplace.close_auction(1, ALICE)

    assert item.owner == BOB
    assert item.current_bidder is None
    assert item.locked_bid == 0
    assert registry.owner_of(COLLECTION, 1) == BOB
    assert ledger.balance_of(ALICE, CURRENCY) == 1750 * 10 ** 15
    assert ledger.balance_of(FEE, CURRENCY) == 250 * 10 ** 15
    assert ledger.balance_of(MARKET, CURRENCY) == 0

    traded, cleared, sold = marketplace.events.history[-3:]
    assert (traded.name, traded.value, traded.offeror, traded.bidder) == ('Traded', 2 * ETHER, ALICE, BOB)
    assert (cleared.name, cleared.bidder, cleared.locked_bid) == ('BidUpdated', None, 0)
    assert (sold.name, sold.owner, sold.buyer) == ('MarketItemSold', ALICE, BOB)

@pytest.mark.asyncio
async def test_close_auction_before_deadline(marketplace, ledger, clock, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER, BOB)
    clock.advance(DAY - 1)

    with pytest.raises(DeadlineNotReachedError, match="closeAuction: auction still running"):
        await marketplace.close_auction(1, ALICE)

@pytest.mark.asyncio
async def test_close_auction_without_bid(marketplace, registry, clock, auction):
    await auction()
    clock.advance(DAY)

    with pytest.raises(ConflictError, match="closeAuction: no bid to settle"):
        await marketplace.close_auction(1, ALICE)

    # The offeror can still withdraw the unsold asset
    await marketplace.remove_market_item(1, COLLECTION, ALICE)
    assert registry.owner_of(COLLECTION, 1) == ALICE

@pytest.mark.asyncio
async def test_close_auction_only_by_offeror(marketplace, ledger, clock, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER, BOB)
    clock.advance(DAY)

    with pytest.raises(UnauthorizedError):
        await marketplace.close_auction(1, BOB)

@pytest.mark.asyncio
async def test_concurrent_bids_keep_escrow_consistent(marketplace, ledger, auction):
    await auction()
    bidders = [f"0xBidder{i}" for i in range(5)]
    for bidder in bidders:
        ledger.fund(bidder, ETHER)

    results = await asyncio.gather(
        *(marketplace.bid(1, RESERVE + i + 1, bidder) for i, bidder in enumerate(bidders)),
        return_exceptions=True
    )

    for result in results:
        assert not isinstance(result, Exception) or isinstance(result, BidTooLowError)
    item = await marketplace.get_market_item(1)
    # Only the winning bid stays in escrow; everyone else is whole
    assert ledger.balance_of(MARKET, CURRENCY) == item.locked_bid
    total = sum(ledger.balance_of(bidder, CURRENCY) for bidder in bidders)
    assert total + item.locked_bid == 5 * ETHER

@pytest.mark.asyncio
@pytest.mark.parametrize("elapsed", [DAY, DAY + 1])
async def test_revoke_bid_after_deadline(marketplace, ledger, clock, auction, elapsed):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER // 2, BOB)
    clock.advance(elapsed)

    with pytest.raises(DeadlinePassedError, match="revokeBid"):
        await marketplace.revoke_bid(1, BOB)

    item = await marketplace.get_market_item(1)
    assert (item.current_bidder, item.locked_bid) == (BOB, ETHER // 2)
    assert ledger.balance_of(MARKET, CURRENCY) == ETHER // 2

@pytest.mark.asyncio
async def test_close_auction_retried_after_fee_payout_failure(marketplace, registry, ledger, clock, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER, BOB)
    clock.advance(DAY)
    ledger.fail_push_to.add(FEE)

    with pytest.raises(EscrowError):
        await marketplace.close_auction(1, ALICE)

    # No payout went out, so the auction can still be settled
    item = await marketplace.get_market_item(1)
    assert item.active
    assert (item.current_bidder, item.locked_bid) == (BOB, ETHER)
    assert registry.owner_of(COLLECTION, 1) == MARKET
    assert ledger.balance_of(MARKET, CURRENCY) == ETHER

    ledger.fail_push_to.clear()
    closed = await marketplace.close_auction(1, ALICE)

    assert closed.owner == BOB
    assert registry.owner_of(COLLECTION, 1) == BOB
    assert ledger.balance_of(ALICE, CURRENCY) == 875 * 10 ** 15

@pytest.mark.asyncio
async def test_close_auction_records_partial_settlement(marketplace, registry, ledger, clock, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER, BOB)
    clock.advance(DAY)
    ledger.fail_push_to.add(ALICE)

    with pytest.raises(EscrowError, match=f"to {ALICE}"):
        await marketplace.close_auction(1, ALICE)

    item = await marketplace.get_market_item(1)
    assert item.owner == BOB
    assert (item.current_bidder, item.locked_bid) == (None, 0)
    assert registry.owner_of(COLLECTION, 1) == BOB
    assert ledger.balance_of(FEE, CURRENCY) == 125 * 10 ** 15
    assert ledger.balance_of(MARKET, CURRENCY) == 875 * 10 ** 15
    assert marketplace.events.history[-1].name == 'MarketItemSold'

    with pytest.raises(ConflictError, match="no longer listed"):
        await marketplace.close_auction(1, ALICE)

@pytest.mark.asyncio
async def test_cancel_auction_keeps_bid_when_refund_fails(marketplace, registry, ledger, auction):
    await auction()
    ledger.fund(BOB, ETHER)
    await marketplace.bid(1, ETHER, BOB)
    ledger.fail_push_to.add(BOB)

    with pytest.raises(EscrowError):
        await marketplace.cancel_auction(1, ALICE)

    item = await marketplace.get_market_item(1)
    assert item.active
    assert item.current_bidder == BOB
    assert registry.owner_of(COLLECTION, 1) == MARKET
