"""Session lifecycle controller for the broadcast chat hub.

ChatHub is the only component that mutates the connection registry and the
history buffer. Each connection event (accept, inbound frame, close, transport
error) is handled to completion while holding one asyncio.Lock, so the shared
state never sees interleaved partial updates and every recipient receives
frames in the order the hub produced them.

Session states:
    anonymous → named (on setUsername) → closed (terminal)

Anonymous sessions may chat under their guest label.

Thread Safety:
    Designed for a single event loop. It is NOT thread-safe for concurrent
    access from multiple threads.
"""
import asyncio
import logging
from typing import List, Optional, Tuple

from fastapi import WebSocket

from app.config import ChatSettings, get_config

from .broadcaster import BroadcastRouter, is_open
from .errors import ChatError, NotFound
from .history import HistoryBuffer
from .protocol import (
    ChatMessage,
    ChatMessageRequest,
    ErrorFrame,
    History,
    SetUsernameRequest,
    SystemMessage,
    UserListUpdate,
    UsernameConfirmed,
    parse_frame,
)
from .registry import ConnectionRegistry, Session

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An internal server error occurred."


class ChatHub:
    """Tracks live sessions and fans chat traffic out to them.

    Args:
        settings: Chat limits. Defaults to the loaded application config.
    """

    def __init__(self, settings: Optional[ChatSettings] = None) -> None:
        self.settings = settings if settings is not None else get_config().chat
        self.reset()

    def reset(self) -> None:
        """Drop all sessions and history and start from an empty hub.

        The lock is created here and binds to the event loop it is first used
        on, so a hub shared across event loops must be reset before each one.
        """
        self.registry = ConnectionRegistry(
            guest_prefix=self.settings.guest_label_prefix,
            guest_length=self.settings.guest_label_length,
            max_username_length=self.settings.max_username_length,
        )
        self.history = HistoryBuffer(self.settings.history_size)
        self.router = BroadcastRouter(self.registry)
        self._lock = asyncio.Lock()

    # =========================================================================
    # Connection events
    # =========================================================================

    async def connect(self, websocket: WebSocket) -> Session:
        """Accept a connection, register its session and announce the roster.

        The new connection receives the history snapshot (only if non-empty)
        before the roster update that every session receives.
        """
        async with self._lock:
            await websocket.accept()
            self.registry.register(websocket)
            session = self.registry.get(websocket)
            logger.info(
                f"[Hub] Session {session.session_id} connected as {session.label}. "
                f"{len(self.registry)} sessions online"
            )

            try:
                messages = self.history.snapshot()
                if messages:
                    await self.router.send_one(websocket, History(messages=list(messages)))

                await self._broadcast_roster()
            except BaseException:
                self.registry.unregister(websocket)
                logger.warning(f"[Hub] Session {session.session_id} dropped during connect")
                raise
            return session

    async def handle_frame(self, websocket: WebSocket, raw: str) -> None:
        """Process one inbound frame from a connection.

        Invalid frames are answered with an error frame to the sender only.
        Frames from a connection that is no longer registered are ignored.
        """
        async with self._lock:
            session = self.registry.get(websocket)
            if session is None:
                logger.warning("[Hub] Ignoring frame from unregistered connection")
                return

            logger.debug(f"[Hub] Received from {session.label}: {raw[:100]}")
            try:
                request = parse_frame(raw, self.settings.max_message_length)
            except ChatError as e:
                logger.info(f"[Hub] Rejected frame from {session.label}: {e.message}")
                await self.router.send_one(websocket, ErrorFrame(message=e.message))
                return

            try:
                if isinstance(request, SetUsernameRequest):
                    await self._set_username(websocket, session, request)
                elif isinstance(request, ChatMessageRequest):
                    await self._chat(session, request)
            except ChatError as e:
                await self.router.send_one(websocket, ErrorFrame(message=e.message))

    async def disconnect(self, websocket: WebSocket) -> Optional[Session]:
        """Remove a closed connection and tell the remaining sessions.

        Safe to call more than once; only the first call has an effect.

        Returns:
            The removed session, or None if it was already gone.
        """
        async with self._lock:
            try:
                session = self.registry.unregister(websocket)
            except NotFound:
                logger.debug("[Hub] Disconnect for connection that is already removed")
                return None

            logger.info(
                f"[Hub] {session.label} disconnected. {len(self.registry)} sessions online"
            )
            await self.router.broadcast_all(
                SystemMessage(content=f"{session.label} has left the chat.")
            )
            await self._broadcast_roster()
            return session

    async def report_error(self, websocket: WebSocket, exc: BaseException) -> None:
        """Log a transport-level error and notify the connection if it is open.

        This does not unregister the session; disconnect() still runs when the
        underlying connection closes.
        """
        logger.error(f"[Hub] WebSocket error: {exc!r}")
        if is_open(websocket):
            async with self._lock:
                await self.router.send_one(websocket, ErrorFrame(message=INTERNAL_ERROR_MESSAGE))

    # =========================================================================
    # Read-only views
    # =========================================================================

    def roster(self) -> List[str]:
        return self.registry.current_labels()

    def history_snapshot(self) -> Tuple[ChatMessage, ...]:
        return self.history.snapshot()

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _set_username(
        self, websocket: WebSocket, session: Session, request: SetUsernameRequest
    ) -> None:
        effective, previous = self.registry.set_display_name(websocket, request.username)

        await self.router.send_one(websocket, UsernameConfirmed(username=effective))
        await self.router.broadcast_all(
            SystemMessage(content=f"{previous or session.guest_label} is now {effective}.")
        )
        await self._broadcast_roster()

    async def _chat(self, session: Session, request: ChatMessageRequest) -> None:
        message = ChatMessage(sender=session.label, content=request.content)
        self.history.append(message)
        # Sender included: clients render their own messages from this copy
        await self.router.broadcast_all(message)

    async def _broadcast_roster(self) -> None:
        await self.router.broadcast_all(UserListUpdate(users=self.registry.current_labels()))


# Global singleton instance used by all WebSocket handlers
hub = ChatHub()
