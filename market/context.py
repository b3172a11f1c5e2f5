"""Shared collaborators handed to every marketplace component."""
import logging
from typing import List, Optional, Protocol

from .escrow import EscrowCoordinator
from .events import EventBus, MarketEvent
from .interfaces import Clock
from .locks import KeyedLock
from .state import MarketState, StateChanges

logger = logging.getLogger(__name__)


class StateSink(Protocol):
    """Persistence boundary receiving every committed change set."""

    async def flush(self, changes: StateChanges, events: List[MarketEvent]) -> None:
        ...


class MarketContext:
    """State, escrow, clock, locks and event stream shared by the components."""

    def __init__(
        self,
        state: MarketState,
        escrow: EscrowCoordinator,
        events: EventBus,
        clock: Clock,
        store: Optional[StateSink] = None,
        locks: Optional[KeyedLock] = None
    ) -> None:
        self.state = state
        self.escrow = escrow
        self.events = events
        self.clock = clock
        self.store = store
        self.locks = locks or KeyedLock()

    def now(self) -> int:
        return self.clock.now()

    async def commit(self, changes: StateChanges, events: List[MarketEvent]) -> None:
        """Flush a committed change set and publish its events in order."""
        if self.store is not None:
            try:
                await self.store.flush(changes, events)
            except Exception as e:
                logger.error(f"Failed to persist committed changes: {e}")
                raise
        self.events.publish(events)
