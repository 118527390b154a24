"""Fan-out delivery of frames to live chat connections.

Delivery Policy:
    - A frame is serialized once per call and sent to each recipient
      concurrently with asyncio.gather().
    - A recipient that is not connected, or whose send fails, is skipped.
      The failure is logged and never raised to the caller.
    - The router does not remove dead connections; ChatHub.disconnect() is
      the only path that unregisters a session.

Ordering:
    Callers serialize their calls (ChatHub holds its lock around every
    broadcast), so successive frames reach each recipient in call order.
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketState
from pydantic import BaseModel

from .errors import TransportFailure
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def is_open(websocket: WebSocket) -> bool:
    """True while both sides of the connection consider it connected."""
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class BroadcastRouter:
    """Delivers frames to the connections in a registry."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def broadcast_all(self, frame: BaseModel) -> int:
        """Send a frame to every registered connection.

        Returns:
            Number of connections the frame was delivered to.
        """
        return await self._deliver(self.registry.connections(), frame)

    async def broadcast_except(self, frame: BaseModel, exclude_websocket: WebSocket) -> int:
        """Send a frame to every registered connection except one.

        Returns:
            Number of connections the frame was delivered to.
        """
        connections = [
            conn for conn in self.registry.connections()
            if conn is not exclude_websocket
        ]
        return await self._deliver(connections, frame)

    async def send_one(self, websocket: WebSocket, frame: BaseModel) -> bool:
        """Send a frame to a single connection.

        Returns:
            True if delivered, False if the connection was closed or failed.
        """
        payload = self._serialize(frame)
        if payload is None:
            return False
        return await self._safe_send(websocket, payload)

    async def _deliver(self, connections: List[WebSocket], frame: BaseModel) -> int:
        if not connections:
            return 0

        payload = self._serialize(frame)
        if payload is None:
            return 0

        results = await asyncio.gather(
            *[self._safe_send(conn, payload) for conn in connections],
            return_exceptions=True
        )
        return sum(1 for success in results if success is True)

    def _serialize(self, frame: BaseModel) -> Optional[str]:
        """Encode a frame once for all recipients, or None if it cannot be encoded."""
        try:
            return frame.model_dump_json()
        except Exception as e:
            logger.error(f"[Router] Dropped {frame.__class__.__name__} frame that failed to serialize: {e}")
            return None

    async def _safe_send(self, connection: WebSocket, payload: str) -> bool:
        """Send serialized text to a connection with error handling.

        Returns:
            True if successful, False if the connection is closed or failed.
        """
        try:
            await self._send(connection, payload)
            return True
        except TransportFailure as e:
            logger.debug(f"[Router] Skipped recipient: {e.message}")
            return False
        except Exception as e:
            logger.debug(f"[Router] Failed to send to connection: {e}")
            return False

    async def _send(self, connection: WebSocket, payload: str) -> None:
        session = self.registry.get(connection)
        session_id = session.session_id if session else ""
        if not is_open(connection):
            raise TransportFailure(f"connection {session_id or '?'} is not open", session_id)
        await connection.send_text(payload)
