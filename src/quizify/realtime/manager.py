"""WebSocket connection manager.

Tracks active WebSocket connections grouped into per-user rooms. Sending to a
user reaches every connection that user currently has open; nothing is
queued for users with no connection.
"""

import json
import time
from collections import defaultdict
from dataclasses import dataclass, field

from fastapi import WebSocket
import structlog

from quizify.realtime.events import ServerEvent

logger = structlog.get_logger()


@dataclass
class ClientConnection:
    """Represents a single WebSocket client."""

    websocket: WebSocket
    user_id: int
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0


class ConnectionManager:
    """Manages all active WebSocket connections.

    Safe for asyncio via single-threaded event loop.
    """

    def __init__(self, max_connections_per_user: int = 5) -> None:
        self.max_connections_per_user = max_connections_per_user
        self._connections: dict[str, ClientConnection] = {}  # conn_id -> client
        self._rooms: dict[int, set[str]] = defaultdict(set)  # user_id -> {conn_ids}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def room_size(self, user_id: int) -> int:
        return len(self._rooms.get(user_id, ()))

    async def connect(self, websocket: WebSocket, conn_id: str, user_id: int) -> bool:
        """Accept a new WebSocket connection and join the user's room.

        Returns False (and closes the socket) when the user is at the connection cap.
        """
        await websocket.accept()
        if self.room_size(user_id) >= self.max_connections_per_user:
            await websocket.close(code=4008, reason="Too many connections")
            logger.warning("ws_connection_limit", user_id=user_id)
            return False

        self._connections[conn_id] = ClientConnection(websocket=websocket, user_id=user_id)
        self._rooms[user_id].add(conn_id)
        logger.info("ws_connected", conn_id=conn_id, user_id=user_id)
        return True

    async def disconnect(self, conn_id: str) -> None:
        """Remove a WebSocket connection from its room."""
        client = self._connections.pop(conn_id, None)
        if client is None:
            return

        self._rooms[client.user_id].discard(conn_id)
        if not self._rooms[client.user_id]:
            del self._rooms[client.user_id]

        logger.info("ws_disconnected", conn_id=conn_id, user_id=client.user_id)

    async def send_to_user(self, user_id: int, event: ServerEvent) -> int:
        """Send an event to every connection in the user's room.

        Returns the number of connections that received it. Connections that
        fail to send are dropped.
        """
        return await self.send_raw_to_user(user_id, event.to_wire())

    async def send_raw_to_user(self, user_id: int, message: dict) -> int:
        conn_ids = list(self._rooms.get(user_id, set()))
        if not conn_ids:
            return 0

        payload = json.dumps(message)
        sent = 0
        failed: list[str] = []

        for conn_id in conn_ids:
            client = self._connections.get(conn_id)
            if client is None:
                failed.append(conn_id)
                continue
            try:
                await client.websocket.send_text(payload)
                client.messages_sent += 1
                sent += 1
            except Exception:
                failed.append(conn_id)

        for conn_id in failed:
            await self.disconnect(conn_id)

        return sent

    def get_stats(self) -> dict:
        """Get connection statistics."""
        return {
            "total_connections": len(self._connections),
            "unique_users": len(self._rooms),
        }


# Global singleton
manager = ConnectionManager()
