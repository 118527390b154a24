"""Registry of live chat sessions keyed by their WebSocket connection.

Each open connection maps to a Session value holding the session's identity.
The Session does not reference its connection, so the registry is the only
place that ties the two together.

Thread Safety:
    Not thread-safe. All mutations are made by ChatHub while holding its lock.
"""
import logging
import uuid
from typing import Dict, List, Optional, Tuple

from fastapi import WebSocket
from pydantic import BaseModel, Field

from .errors import InvalidName, NotFound

logger = logging.getLogger(__name__)

DEFAULT_GUEST_PREFIX = "Guest-"
DEFAULT_GUEST_LENGTH = 8
DEFAULT_MAX_USERNAME_LENGTH = 20


class Session(BaseModel):
    """Identity of one connected client.

    Attributes:
        session_id: Backend-generated unique identifier (uuid4 hex), immutable.
        display_name: Chosen display name, or None while anonymous.
        guest_label: Label used while no display name is set.
    """
    session_id: str = Field(..., description="Unique session ID")
    display_name: Optional[str] = Field(default=None, description="Chosen display name")
    guest_label: str = Field(..., description="Derived label used while anonymous")

    @property
    def label(self) -> str:
        """Name shown to other participants."""
        return self.display_name or self.guest_label


class ConnectionRegistry:
    """Maps open connections to their sessions.

    Args:
        guest_prefix: Text prepended to the session ID prefix in guest labels.
        guest_length: How many characters of the session ID the guest label uses.
        max_username_length: Display names longer than this are truncated.
    """

    def __init__(
        self,
        guest_prefix: str = DEFAULT_GUEST_PREFIX,
        guest_length: int = DEFAULT_GUEST_LENGTH,
        max_username_length: int = DEFAULT_MAX_USERNAME_LENGTH,
    ) -> None:
        self.guest_prefix = guest_prefix
        self.guest_length = guest_length
        self.max_username_length = max_username_length
        # websocket -> Session
        self._sessions: Dict[WebSocket, Session] = {}

    def guest_label_for(self, session_id: str) -> str:
        return f"{self.guest_prefix}{session_id[:self.guest_length]}"

    def register(self, websocket: WebSocket) -> str:
        """Create an anonymous session for a newly accepted connection.

        Returns:
            The new session's ID.
        """
        session_id = uuid.uuid4().hex
        self._sessions[websocket] = Session(
            session_id=session_id,
            guest_label=self.guest_label_for(session_id),
        )
        return session_id

    def get(self, websocket: WebSocket) -> Optional[Session]:
        return self._sessions.get(websocket)

    def set_display_name(self, websocket: WebSocket, name: str) -> Tuple[str, Optional[str]]:
        """Set the display name for a connection's session.

        The name is trimmed and truncated to ``max_username_length``.

        Returns:
            Tuple of (effective_name, previous_name). previous_name is None
            when the session was anonymous.

        Raises:
            InvalidName: The name is empty after trimming.
            NotFound: The connection has no session.
        """
        effective = (name or "").strip()[:self.max_username_length].strip()
        if not effective:
            raise InvalidName()

        session = self._sessions.get(websocket)
        if session is None:
            raise NotFound()

        previous = session.display_name
        session.display_name = effective
        logger.info(f"[Registry] Session {session.session_id} is now named {effective!r}")
        return (effective, previous)

    def unregister(self, websocket: WebSocket) -> Session:
        """Remove a connection's session.

        Returns:
            The removed Session, with its last known name.

        Raises:
            NotFound: The connection was already removed.
        """
        session = self._sessions.pop(websocket, None)
        if session is None:
            raise NotFound()
        return session

    def current_labels(self) -> List[str]:
        """Labels of every live session, in registration order."""
        return [session.label for session in list(self._sessions.values())]

    def connections(self) -> List[WebSocket]:
        """Snapshot of all registered connections."""
        return list(self._sessions.keys())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, websocket: object) -> bool:
        return websocket in self._sessions
