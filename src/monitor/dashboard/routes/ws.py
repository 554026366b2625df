"""WebSocket hub broadcasting display events to dashboard clients as JSON.

Bus events are serialized synchronously and put on one outbox queue. A
single sender task drains it, so broadcasts never overlap and a burst of
trades cannot pile up unbounded tasks. When the outbox is full the oldest
message is dropped.
"""

from __future__ import annotations

import asyncio
import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from monitor.events import DisplayEvent

log = structlog.get_logger(__name__)

router = APIRouter()

_OUTBOX_SIZE = 1000


class DashboardHub:
    """Manages WebSocket connections and forwards bus events to all clients."""

    def __init__(self) -> None:
        self.connections: list[WebSocket] = []
        self._outbox: asyncio.Queue[str] | None = None
        self._sender: asyncio.Task | None = None  # type: ignore[type-arg]
        self._loop: asyncio.AbstractEventLoop | None = None

    async def connect(self, ws: WebSocket) -> None:
        """Accept a WebSocket connection and add it to the active connections list."""
        await ws.accept()
        self.connections.append(ws)
        log.info("dashboard_ws_connected", total=len(self.connections))

    def disconnect(self, ws: WebSocket) -> None:
        """Remove a WebSocket connection from the active connections list."""
        if ws in self.connections:
            self.connections.remove(ws)
        log.info("dashboard_ws_disconnected", total=len(self.connections))

    async def broadcast(self, text: str) -> None:
        """Send a message to all connected clients, removing broken connections."""
        for ws in self.connections.copy():
            try:
                await ws.send_text(text)
            except Exception:
                if ws in self.connections:
                    self.connections.remove(ws)
                log.warning("dashboard_ws_broadcast_error", remaining=len(self.connections))

    def on_event(self, event: DisplayEvent) -> None:
        """EventBus subscriber: queue the event for the sender task."""
        if not self.connections:
            return
        outbox = self._ensure_sender()
        if outbox.full():
            outbox.get_nowait()
            log.debug("dashboard_ws_message_dropped", kind=event.kind)
        outbox.put_nowait(json.dumps(event.to_dict()))

    async def close(self) -> None:
        """Stop the sender task."""
        if self._sender is not None:
            self._sender.cancel()
            try:
                await self._sender
            except asyncio.CancelledError:
                pass
        self._sender = None
        self._outbox = None
        self._loop = None

    def _ensure_sender(self) -> asyncio.Queue[str]:
        loop = asyncio.get_running_loop()
        if (
            self._outbox is None
            or self._sender is None
            or self._sender.done()
            or self._loop is not loop
        ):
            self._loop = loop
            self._outbox = asyncio.Queue(maxsize=_OUTBOX_SIZE)
            self._sender = loop.create_task(self._send_loop(self._outbox))
        return self._outbox

    async def _send_loop(self, outbox: asyncio.Queue[str]) -> None:
        while True:
            text = await outbox.get()
            await self.broadcast(text)


hub = DashboardHub()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint streaming display events."""
    ws_hub: DashboardHub = websocket.app.state.hub
    await ws_hub.connect(websocket)
    try:
        while True:
            # Consume messages to keep connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        ws_hub.disconnect(websocket)
