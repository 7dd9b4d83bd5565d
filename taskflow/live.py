"""Per-user live notification channel."""

import logging
from typing import Dict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Tracks open WebSocket connections per user.

    A user may have several tabs open, so each user id maps to a set of
    sockets. The table lives in process memory and is rebuilt as clients
    reconnect after a restart.
    """

    def __init__(self):
        # Map of user_id -> set of websocket connections
        self.user_connections: Dict[int, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: int):
        """Accept and register a websocket connection."""
        await websocket.accept()
        self.user_connections.setdefault(user_id, set()).add(websocket)
        logger.info(f"Live channel opened for user {user_id} ({len(self.user_connections[user_id])} open)")

    def disconnect(self, websocket: WebSocket, user_id: int):
        """Unregister a websocket connection."""
        connections = self.user_connections.get(user_id)
        if not connections:
            return
        connections.discard(websocket)
        if not connections:
            del self.user_connections[user_id]
        logger.info(f"Live channel closed for user {user_id}")

    def is_connected(self, user_id: int) -> bool:
        return bool(self.user_connections.get(user_id))

    async def send_to_user(self, user_id: int, message: dict):
        """Send a message to every open connection of a user, dropping dead ones."""
        for connection in list(self.user_connections.get(user_id, ())):
            try:
                await connection.send_json(message)
            except Exception:
                logger.info(f"Dropping dead live connection for user {user_id}")
                self.disconnect(connection, user_id)


# Global connection manager instance
manager = ConnectionManager()


def message(type_: str, payload: dict) -> dict:
    return {"type": type_, "payload": payload}


async def push_new_notification(user_id: int, notification: dict):
    await manager.send_to_user(user_id, message("new_notification", notification))


async def push_unread_count(user_id: int, count: int):
    await manager.send_to_user(user_id, message("unread_count", {"count": count}))


async def push_notification_read(user_id: int, notification_id: int):
    await manager.send_to_user(user_id, message("notification_read", {"notification_id": notification_id}))
