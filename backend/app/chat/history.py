"""Bounded in-memory log of recent chat messages."""
from collections import deque
from typing import Deque, Tuple

from .protocol import ChatMessage

DEFAULT_HISTORY_SIZE = 50


class HistoryBuffer:
    """Most recent chat messages, oldest first.

    Appending past capacity evicts from the head, so the buffer never holds
    more than ``capacity`` entries.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_SIZE) -> None:
        if capacity <= 0:
            raise ValueError("History capacity must be positive")
        self._messages: Deque[ChatMessage] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._messages.maxlen

    def append(self, message: ChatMessage) -> ChatMessage:
        """Add a message to the tail, evicting the oldest when full."""
        self._messages.append(message)
        return message

    def snapshot(self) -> Tuple[ChatMessage, ...]:
        """Immutable copy of the buffered messages, oldest first."""
        return tuple(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
