"""Chat router providing WebSocket and HTTP endpoints.

This module provides:
    - WebSocket {server.ws_path}: Real-time chat messaging (default /ws)
    - GET /chat/history: Buffered message history
    - GET /chat/users: Current roster

The WebSocket protocol supports:
    - Message history delivery on connect
    - Optional display names (anonymous sessions chat as guests)
    - Join/leave/rename notifications
    - Roster broadcasts on every roster change
    - Real-time message broadcasting (sender included)

Protocol Message Types (client → server):
    - setUsername: Choose or change display name
    - chatMessage: Chat message
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from app.config import get_config

from .broadcaster import is_open
from .hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()

WS_PATH = get_config().server.ws_path


async def _receive_text(websocket: WebSocket) -> str:
    """Wait for the next data frame and return it as text.

    Binary frames are decoded as UTF-8. Undecodable frames come back as an
    empty string, which the protocol layer rejects as invalid JSON.

    Raises:
        WebSocketDisconnect: The client closed the connection.
    """
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))

    if message.get("text") is not None:
        return message["text"]
    try:
        return (message.get("bytes") or b"").decode("utf-8")
    except UnicodeDecodeError:
        return ""


@router.get("/chat/history")
async def get_message_history() -> JSONResponse:
    """Get the buffered chat history, oldest first.

    Returns:
        JSON with a messages array of chat frames.

    Example:
        GET /chat/history
    """
    messages = hub.history_snapshot()
    return JSONResponse({"messages": [msg.model_dump() for msg in messages]})


@router.get("/chat/users")
async def get_users() -> JSONResponse:
    """Get the labels of every connected session.

    Returns:
        JSON with users array and count.
    """
    users = hub.roster()
    return JSONResponse({"users": users, "count": len(users)})


@router.websocket(WS_PATH)
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for the chat hub.

    This endpoint handles the complete chat lifecycle for a single client.

    Protocol Flow:
        1. Client connects → Server assigns a session and guest label
           → Server sends: {type: "history", messages: [...]} (if any)
           → Server broadcasts: {type: "userListUpdate", users: [...]}
        2. Client sends: {type: "setUsername", username}
           → Server sends: {type: "usernameConfirmed", username}
           → Server broadcasts: {type: "systemMessage"}, {type: "userListUpdate"}
        3. Client sends: {type: "chatMessage", content}
           → Server broadcasts: {type: "chat", sender, content, timestamp}
        4. On disconnect → Server broadcasts: {type: "systemMessage"},
           {type: "userListUpdate"}

    Invalid frames get {type: "error", message} and the connection stays open.

    Args:
        websocket: The WebSocket connection.
    """
    session_id = "?"
    try:
        session = await hub.connect(websocket)
        session_id = session.session_id
        logger.info(f"[WS] Connection accepted for session {session_id}")

        # Main message loop
        while True:
            raw = await _receive_text(websocket)
            await hub.handle_frame(websocket, raw)

    except WebSocketDisconnect as e:
        logger.info(f"[WS] Session {session_id} closed (code={e.code})")

    except Exception as e:
        await hub.report_error(websocket, e)
        if is_open(websocket):
            await websocket.close(code=1011)  # 1011 = Internal Error

    finally:
        await hub.disconnect(websocket)
