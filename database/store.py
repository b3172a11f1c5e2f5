"""State stores backing the in-memory marketplace state.

A store is loaded once at startup to rebuild ``MarketState`` and then
receives one ``flush`` per committed operation with the records that
operation wrote and the events it emitted.
"""
import json
import logging
from typing import Any, List, Mapping, Optional

import asyncpg
from pydantic import ValidationError

from market.events import MarketEvent
from market.models import MarketItem, PrivateMarketItem, Registration
from market.state import MarketState, StateChanges

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

MARKET_KIND = 'market'
PRIVATE_KIND = 'private'


class StateStore:
    """Interface implemented by every state store."""

    async def load(self) -> MarketState:
        raise NotImplementedError

    async def flush(self, changes: StateChanges, events: List[MarketEvent]) -> None:
        raise NotImplementedError


class MemoryStore(StateStore):
    """Keeps state only in the process; counts flushes for diagnostics."""

    def __init__(self) -> None:
        self.flushes = 0
        self.events_flushed = 0
        self.last_changes: Optional[StateChanges] = None

    async def load(self) -> MarketState:
        return MarketState()

    async def flush(self, changes: StateChanges, events: List[MarketEvent]) -> None:
        self.flushes += 1
        self.events_flushed += len(events)
        self.last_changes = changes


def _int(value: Any) -> int:
    # NUMERIC columns come back as Decimal
    return int(value) if value is not None else 0


def _market_item(row: Mapping[str, Any]) -> MarketItem:
    return MarketItem(
        asset_collection=row['asset_collection'],
        asset_id=_int(row['asset_id']),
        price=_int(row['price']),
        currency=row['currency'],
        is_auction=row['is_auction'],
        offeror=row['offeror'],
        owner=row['owner'],
        minimum_offer=_int(row['minimum_offer']),
        auction_deadline=_int(row['auction_deadline']),
        current_bidder=row['current_bidder'],
        locked_bid=_int(row['locked_bid'])
    )


def _private_item(row: Mapping[str, Any]) -> PrivateMarketItem:
    return PrivateMarketItem(
        asset_collection=row['asset_collection'],
        asset_id=_int(row['asset_id']),
        price=_int(row['price']),
        currency=row['currency'],
        offeror=row['offeror'],
        owner=row['owner'],
        invited_buyer=row['invited_buyer']
    )


class PostgresStore(StateStore):
    """Persists marketplace state into the v1 schema through an asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool
        self._history_seq = {MARKET_KIND: 0, PRIVATE_KIND: 0}
        self._registration_seq = 0
        self._event_seq = 0

    async def load(self) -> MarketState:
        """Rebuild the marketplace state from the database.

        Returns:
            A populated MarketState

        Raises:
            PersistenceError: If the state cannot be read
        """
        state = MarketState()
        try:
            async with self.pool.acquire() as conn:
                for row in await conn.fetch('SELECT * FROM market_items'):
                    item = _market_item(row)
                    state.market_items[item.asset_id] = item

                for row in await conn.fetch('SELECT * FROM private_market_items'):
                    item = _private_item(row)
                    state.private_items[item.asset_id] = item

                history = await conn.fetch(
                    'SELECT kind, asset_id, seq FROM listing_history ORDER BY kind, seq'
                )
                for row in history:
                    if row['kind'] == MARKET_KIND:
                        state.listed_asset_ids.append(_int(row['asset_id']))
                    else:
                        state.private_listed_asset_ids.append(_int(row['asset_id']))
                    self._history_seq[row['kind']] = max(
                        self._history_seq.get(row['kind'], 0), row['seq']
                    )

                for row in await conn.fetch('SELECT * FROM registrations ORDER BY seq'):
                    state.registrations.append(Registration(
                        owner=row['owner'],
                        creator=row['creator'],
                        price=_int(row['price']),
                        currency=row['currency'],
                        expiry=row['expiry']
                    ))
                    self._registration_seq = row['seq']

                self._event_seq = await conn.fetchval(
                    'SELECT COALESCE(MAX(seq), 0) FROM market_events'
                )
        except asyncpg.PostgresError as e:
            raise PersistenceError(f"Failed to load marketplace state: {e}")
        except ValidationError as e:
            raise PersistenceError(f"Stored marketplace record is invalid: {e}")

        logger.info(
            f"Loaded {len(state.market_items)} market items, "
            f"{len(state.private_items)} private items and "
            f"{len(state.registrations)} registrations"
        )
        return state

    async def flush(self, changes: StateChanges, events: List[MarketEvent]) -> None:
        """Write one committed change set in a single transaction.

        Raises:
            PersistenceError: If the transaction fails
        """
        if changes.is_empty() and not events:
            return

        history_seq = dict(self._history_seq)
        registration_seq = self._registration_seq
        event_seq = self._event_seq

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    for item in changes.listed:
                        history_seq[MARKET_KIND] += 1
                        await self._insert_history(conn, MARKET_KIND, item.asset_id, history_seq[MARKET_KIND])
                    for item in changes.private_listed:
                        history_seq[PRIVATE_KIND] += 1
                        await self._insert_history(conn, PRIVATE_KIND, item.asset_id, history_seq[PRIVATE_KIND])

                    for item in changes.market_items:
                        await self._upsert_market_item(conn, item)
                    for item in changes.private_items:
                        await self._upsert_private_item(conn, item)

                    for registration in changes.registrations:
                        registration_seq += 1
                        await conn.execute(
                            '''
                            INSERT INTO registrations (seq, owner, creator, price, currency, expiry)
                            VALUES ($1, $2, $3, $4, $5, $6)
                            ''',
                            registration_seq, registration.owner, registration.creator,
                            registration.price, registration.currency, registration.expiry
                        )

                    for event in events:
                        event_seq += 1
                        await conn.execute(
                            'INSERT INTO market_events (seq, name, args) VALUES ($1, $2, $3)',
                            event_seq, event.name, json.dumps(event.model_dump())
                        )
        except asyncpg.PostgresError as e:
            raise PersistenceError(f"Failed to flush marketplace state: {e}")

        self._history_seq = history_seq
        self._registration_seq = registration_seq
        self._event_seq = event_seq

    @staticmethod
    async def _insert_history(conn, kind: str, asset_id: int, seq: int) -> None:
        await conn.execute(
            '''
            INSERT INTO listing_history (kind, asset_id, seq)
            VALUES ($1, $2, $3)
            ON CONFLICT (kind, asset_id) DO NOTHING
            ''',
            kind, asset_id, seq
        )

    @staticmethod
    async def _upsert_market_item(conn, item: MarketItem) -> None:
        await conn.execute(
            '''
            UPSERT INTO market_items (
                asset_id, asset_collection, price, currency, is_auction, offeror,
                owner, minimum_offer, auction_deadline, current_bidder, locked_bid,
                updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, now())
            ''',
            item.asset_id, item.asset_collection, item.price, item.currency,
            item.is_auction, item.offeror, item.owner, item.minimum_offer,
            item.auction_deadline, item.current_bidder, item.locked_bid
        )

    @staticmethod
    async def _upsert_private_item(conn, item: PrivateMarketItem) -> None:
        await conn.execute(
            '''
            UPSERT INTO private_market_items (
                asset_id, asset_collection, price, currency, offeror, owner,
                invited_buyer, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, now())
            ''',
            item.asset_id, item.asset_collection, item.price, item.currency,
            item.offeror, item.owner, item.invited_buyer
        )


__all__ = ['StateStore', 'MemoryStore', 'PostgresStore']
