"""Domain events and the in-process stream that delivers them.

Events are buffered while an operation runs and published together, in
emission order, only after the operation has committed.
"""
import logging
from typing import Any, Callable, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class MarketEvent(BaseModel):
    """Base class for all domain events."""
    model_config = ConfigDict(frozen=True)

    name: ClassVar[str] = 'MarketEvent'

    def to_message(self) -> Dict[str, Any]:
        """Serialize as ``{"event": name, "args": {...}}`` for indexers."""
        return {'event': self.name, 'args': self.model_dump()}


class MarketItemCreated(MarketEvent):
    name: ClassVar[str] = 'MarketItemCreated'
    asset_collection: str
    asset_id: int
    offeror: str
    owner: Optional[str] = None
    price: int
    currency: str
    is_auction: bool
    minimum_offer: int
    auction_deadline: int


class PrivateMarketItemCreated(MarketEvent):
    name: ClassVar[str] = 'PrivateMarketItemCreated'
    asset_collection: str
    asset_id: int
    offeror: str
    owner: Optional[str] = None
    price: int
    currency: str
    invited_buyer: str


class OfferUpdated(MarketEvent):
    name: ClassVar[str] = 'OfferUpdated'
    asset_id: int
    offeror: Optional[str] = None
    minimum_offer: int
    invited_bidder: Optional[str] = None


class BidUpdated(MarketEvent):
    name: ClassVar[str] = 'BidUpdated'
    asset_id: int
    bidder: Optional[str] = None
    locked_bid: int


class MarketItemRemoved(MarketEvent):
    name: ClassVar[str] = 'MarketItemRemoved'
    asset_collection: str
    asset_id: int


class MarketItemSold(MarketEvent):
    name: ClassVar[str] = 'MarketItemSold'
    owner: str
    buyer: str
    asset_id: int


class Traded(MarketEvent):
    name: ClassVar[str] = 'Traded'
    asset_id: int
    value: int
    offeror: str
    bidder: str


class Registered(MarketEvent):
    name: ClassVar[str] = 'Registered'
    owner: str
    price: int
    creator: str
    currency: str


class Tiped(MarketEvent):
    name: ClassVar[str] = 'Tiped'
    donator: str
    amount: int
    creator: str
    currency: str


Subscriber = Callable[[MarketEvent], Any]


class EventBus:
    """Ordered, append-only notification stream.

    Subscribers are called synchronously in subscription order for every
    published event. A failing subscriber is logged and does not stop
    delivery to the others; the operation that produced the event has
    already committed by then.
    """

    def __init__(self, keep_history: bool = True) -> None:
        self._subscribers: List[Subscriber] = []
        self.keep_history = keep_history
        self.history: List[MarketEvent] = []
        self.published = 0

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback and return a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, events: List[MarketEvent]) -> None:
        """Deliver ``events`` in order to every subscriber."""
        for event in events:
            self.published += 1
            if self.keep_history:
                self.history.append(event)
            logger.debug(f"Publishing {event.name}: {event.model_dump()}")
            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception as e:
                    logger.error(f"Event subscriber {callback!r} failed on {event.name}: {e}")


__all__ = [
    'MarketEvent',
    'MarketItemCreated',
    'PrivateMarketItemCreated',
    'OfferUpdated',
    'BidUpdated',
    'MarketItemRemoved',
    'MarketItemSold',
    'Traded',
    'Registered',
    'Tiped',
    'EventBus',
]
