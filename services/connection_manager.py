"""
Connection Manager - process-local registry of open /api/ws sockets per user
"""

import json
import logging
from typing import Any, Dict, List

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


def _is_open(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class ConnectionManager:
    """
    Tracks every open socket per user (one per tab or device).
    Only touched from the event loop, so no locking is needed.
    """

    def __init__(self):
        self._connections: Dict[int, List[WebSocket]] = {}

    def register(self, user_id: int, websocket: WebSocket):
        connections = self._connections.setdefault(user_id, [])
        connections.append(websocket)
        logger.info(
            f"User {user_id} added to active WebSocket connections. "
            f"Total connections for user: {len(connections)}"
        )

    def unregister(self, user_id: int, websocket: WebSocket):
        connections = self._connections.get(user_id, [])
        if websocket in connections:
            connections.remove(websocket)

        if not connections:
            self._connections.pop(user_id, None)
            logger.info(f"User {user_id} removed from active WebSocket connections")
        else:
            logger.info(f"User {user_id} now has {len(connections)} active WebSocket connections")

    def user_connections(self, user_id: int) -> List[WebSocket]:
        return list(self._connections.get(user_id, []))

    def is_user_connected(self, user_id: int) -> bool:
        return any(_is_open(ws) for ws in self._connections.get(user_id, []))

    @property
    def active_users_count(self) -> int:
        return len(self._connections)

    @property
    def total_connections_count(self) -> int:
        return sum(len(connections) for connections in self._connections.values())

    async def send_to_user(self, user_id: int, message: Dict[str, Any]) -> bool:
        """
        Send a message to every open connection of a user.

        Returns:
            True if at least one connection received it
        """
        text = json.dumps(message, default=str)
        sent = False
        for websocket in self.user_connections(user_id):
            if not _is_open(websocket):
                continue
            try:
                await websocket.send_text(text)
                sent = True
            except Exception as e:
                logger.error(f"WebSocket send to user {user_id} failed: {e}")
        return sent

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send a message to every open connection. Returns the number of sockets reached."""
        text = json.dumps(message, default=str)
        count = 0
        for user_id in list(self._connections):
            for websocket in self.user_connections(user_id):
                if not _is_open(websocket):
                    continue
                try:
                    await websocket.send_text(text)
                    count += 1
                except Exception as e:
                    logger.error(f"WebSocket broadcast to user {user_id} failed: {e}")
        return count


# Shared by the /api/ws router and the services that push events
connection_manager = ConnectionManager()
