"""WebSocket endpoints for real-time domain events."""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import Any, Callable, Dict, Optional, Set
from datetime import datetime
import logging
import asyncio
from asyncio import Queue, Task

from market import EventBus, MarketEvent

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/ws",
    tags=["WebSocket"]
)

# Events buffered per connection before the slowest clients start losing messages
MAX_QUEUED_EVENTS = 1000

class ConnectionManager:
    """Fans domain events out to connected WebSocket clients."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self.message_queues: Dict[WebSocket, Queue] = {}
        self.sender_tasks: Dict[WebSocket, Task] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._bus: Optional[EventBus] = None

    def attach(self, bus: EventBus) -> None:
        """Subscribe to ``bus`` once; later calls with the same bus are no-ops."""
        if self._bus is bus:
            return
        if self._unsubscribe:
            self._unsubscribe()
        self._bus = bus
        self._unsubscribe = bus.subscribe(self.broadcast)

    async def connect(self, websocket: WebSocket):
        """Accept connection and start forwarding events to it."""
        await websocket.accept()
        self.active_connections.add(websocket)
        self.message_queues[websocket] = Queue(maxsize=MAX_QUEUED_EVENTS)
        self.sender_tasks[websocket] = asyncio.create_task(self.sender_loop(websocket))
        logger.info(f"New event stream connection ({len(self.active_connections)} active)")

    def disconnect(self, websocket: WebSocket):
        """Remove connection and stop its sender task."""
        self.active_connections.discard(websocket)
        task = self.sender_tasks.pop(websocket, None)
        if task:
            task.cancel()
        self.message_queues.pop(websocket, None)
        logger.info(f"Event stream connection closed ({len(self.active_connections)} active)")

    def broadcast(self, event: MarketEvent) -> None:
        """Queue an event for every connection. Called synchronously by the event bus."""
        message = event.to_message()
        for websocket, queue in list(self.message_queues.items()):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning(f"Dropping {event.name} for a slow event stream client")

    async def sender_loop(self, websocket: WebSocket):
        """Send queued events to a single connection in order."""
        queue = self.message_queues[websocket]
        try:
            while True:
                message = await queue.get()
                await websocket.send_json(message)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Error sending event: {e}")

    async def handle_message(self, websocket: WebSocket, message: Dict[str, Any]):
        """Handle an incoming client message."""
        if message.get("type") == "ping":
            await websocket.send_json({
                "type": "pong",
                "timestamp": datetime.utcnow().isoformat()
            })

manager = ConnectionManager()

@router.websocket("/events")
async def event_stream(websocket: WebSocket):
    """Stream every committed domain event as ``{"event": name, "args": {...}}``."""
    market = websocket.app.state.market
    manager.attach(market.events)
    await manager.connect(websocket)
    try:
        while True:
            message = await websocket.receive_json()
            await manager.handle_message(websocket, message)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Event stream error: {e}")
    finally:
        manager.disconnect(websocket)

__all__ = ['router', 'manager', 'ConnectionManager']
