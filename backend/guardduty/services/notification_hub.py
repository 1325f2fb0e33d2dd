from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def teacher_channel(teacher_id: str) -> str:
    return f"teacher:{teacher_id}"


def management_channel(institute_id: str) -> str:
    return f"management:{institute_id}"


class NotificationHub:
    """Websocket fan-out keyed by channel name (see ``*_channel`` helpers)."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, channel: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[channel].add(websocket)

    async def disconnect(self, channel: str, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._connections.get(channel)
            if not sockets:
                return
            sockets.discard(websocket)
            if not sockets:
                self._connections.pop(channel, None)

    def subscriber_count(self, channel: str) -> int:
        return len(self._connections.get(channel, ()))

    async def publish(self, channel: str, payload: dict) -> int:
        async with self._lock:
            sockets = list(self._connections.get(channel, set()))

        if not sockets:
            return 0

        stale: list[WebSocket] = []
        for websocket in sockets:
            try:
                await websocket.send_json(payload)
            except Exception:  # pragma: no cover - network/runtime dependent
                stale.append(websocket)

        if stale:
            async with self._lock:
                active = self._connections.get(channel, set())
                for socket in stale:
                    active.discard(socket)
                if not active:
                    self._connections.pop(channel, None)
            logger.debug("Removed %d stale notification websocket(s) on %s", len(stale), channel)
        return len(sockets) - len(stale)


notification_hub = NotificationHub()
