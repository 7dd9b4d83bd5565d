"""WebSocket endpoint for live notification updates."""

import json
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from taskflow import database, live
from taskflow.auth.dependencies import resolve_user_from_token
from taskflow.services import notifications

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["websocket"])


def _bearer_token(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


def _authenticate(token: Optional[str]) -> Tuple[int, int]:
    """
    Resolve the socket's user and their current unread count.

    The session is closed before returning so an open socket never holds a
    pooled connection.

    Returns:
        (user_id, unread_count) tuple
    """
    db = database.SessionLocal()
    try:
        user = resolve_user_from_token(token, db)
        return user.id, notifications.unread_count(db, user.id)
    finally:
        db.close()


@router.websocket("/notifications")
async def notifications_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Per-user live channel.

    The access token is passed as ``?token=`` (browsers cannot set headers on
    a WebSocket handshake) or as an ``Authorization: Bearer`` header. A
    missing or invalid token, or a disabled account, closes the socket with
    code 1008 before it is accepted.

    Server messages are ``{"type": ..., "payload": ...}`` with types
    ``new_notification``, ``unread_count`` and ``notification_read``. A client
    ``{"type": "ping"}`` is answered with ``{"type": "pong"}``.
    """
    try:
        user_id, count = _authenticate(_bearer_token(websocket, token))
    except HTTPException as e:
        logger.info(f"Rejected live connection: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await live.manager.connect(websocket, user_id)
    await websocket.send_json(live.message("unread_count", {"count": count}))

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except ValueError:
                logger.debug(f"Ignoring malformed live message from user {user_id}")
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.debug(f"Live client of user {user_id} disconnected")
    finally:
        live.manager.disconnect(websocket, user_id)
