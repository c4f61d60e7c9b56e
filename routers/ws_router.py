"""
Realtime Router - the single /api/ws channel per signed-in user
"""

import asyncio
import logging
import time

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from auth_utils import authenticate_websocket
from config.settings import settings
from database import get_session_factory
from realtime.messages import (
    CONNECTION_ESTABLISHED,
    PING,
    PONG,
    MessageParseError,
    PingMessage,
    encode_message,
    parse_message,
)
from services.connection_manager import connection_manager

logger = logging.getLogger(__name__)

POLICY_VIOLATION = 1008

router = APIRouter(tags=["realtime"])


def _now_ms() -> int:
    return int(time.time() * 1000)


async def _keepalive(websocket: WebSocket, user_id: int):
    interval = settings.ws_ping_interval_seconds
    while True:
        await asyncio.sleep(interval)
        try:
            await websocket.send_text(encode_message({"type": PING, "data": {"timestamp": _now_ms()}}))
        except Exception as e:
            logger.info(f"Keep-alive ping to user {user_id} failed, stopping: {e}")
            return


async def _handle_client_frame(websocket: WebSocket, user_id: int, text: str):
    try:
        message = parse_message(text)
    except MessageParseError as e:
        logger.error(f"Error parsing WebSocket message from user {user_id}: {e}")
        return

    logger.debug(f"Received message from user {user_id}: {message}")
    if isinstance(message, PingMessage):
        await websocket.send_text(
            encode_message({"type": PONG, "data": {"timestamp": _now_ms(), "echo": message.data}})
        )


@router.websocket("/api/ws")
async def realtime_socket(websocket: WebSocket, sessions=Depends(get_session_factory)):
    # Only the handshake touches the database; no connection is held while the socket is open
    async with sessions() as db:
        user = await authenticate_websocket(websocket, db)
    await websocket.accept()

    if user is None:
        logger.warning("WebSocket connection rejected - no user in session")
        await websocket.close(code=POLICY_VIOLATION, reason="Authentication required")
        return

    user_id = user.id
    connection_manager.register(user_id, websocket)
    logger.info(f"WebSocket connected for user: {user_id}")

    keepalive = asyncio.create_task(_keepalive(websocket, user_id))
    try:
        await websocket.send_text(encode_message({
            "type": CONNECTION_ESTABLISHED,
            "data": {
                "userId": user_id,
                "timestamp": _now_ms(),
                "message": "Connected to Pantry Vault real-time server",
            },
        }))

        while True:
            text = await websocket.receive_text()
            await _handle_client_frame(websocket, user_id, text)
    except WebSocketDisconnect as e:
        logger.info(f"WebSocket closed for user: {user_id} (code={e.code})")
    finally:
        keepalive.cancel()
        connection_manager.unregister(user_id, websocket)
