from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

from blockstage.core.events import ActorChanged


logger = logging.getLogger(__name__)


class StageWebSocketHub:
    """In-process WebSocket fan-out of stage events.

    Contract:
      - `connect(websocket)` accepts the socket and returns its outbound queue.
      - `publish(payload)` is synchronous so it can be used as a store
        subscriber; payloads are queued per connection in publish order.
      - `pump(websocket, queue)` drains one connection's queue.

    Payloads should be JSON-serializable dicts.
    """

    def __init__(self, *, max_queue: int = 1_000) -> None:
        self._queues: dict[WebSocket, asyncio.Queue[dict[str, object]]] = {}
        self._max_queue = max_queue
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._queues)

    async def connect(self, websocket: WebSocket) -> asyncio.Queue[dict[str, object]]:
        queue: asyncio.Queue[dict[str, object]] = asyncio.Queue(maxsize=self._max_queue)
        # Register first: every event after the handshake reaches this queue.
        async with self._lock:
            self._queues[websocket] = queue
        await websocket.accept()
        return queue

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._queues.pop(websocket, None)

    def publish(self, payload: dict[str, object]) -> None:
        for websocket, queue in list(self._queues.items()):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                # Slow client; it will resync from GET /actors.
                logger.warning("dropping stage event for slow websocket client %s", websocket.client)

    def on_actor_changed(self, event: ActorChanged) -> None:
        self.publish(event.to_payload())

    async def pump(self, websocket: WebSocket, queue: asyncio.Queue[dict[str, object]]) -> None:
        while True:
            payload = await queue.get()
            await websocket.send_json(payload)


hub = StageWebSocketHub()
