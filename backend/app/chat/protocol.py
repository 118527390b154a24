"""Wire protocol for the chat hub.

Every frame is one JSON object with a ``type`` field selecting the variant.

Client → server:
    - setUsername: {username}
    - chatMessage: {content}

Server → client:
    - usernameConfirmed: {username}
    - chat: {sender, content, timestamp}
    - history: {messages: [chat, ...]}
    - systemMessage: {content}
    - userListUpdate: {users: [label, ...]}
    - error: {message}
"""
import json
from datetime import datetime
from typing import List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

from .errors import InvalidContent, InvalidName, InvalidPayload, UnknownType

TIMESTAMP_FORMAT = "%H:%M:%S"


def server_timestamp() -> str:
    """Human-readable local time assigned by the server to chat messages."""
    return datetime.now().strftime(TIMESTAMP_FORMAT)


# =============================================================================
# Client → server
# =============================================================================


def _encodable(value: str) -> str:
    """Reject text that cannot be sent back out as UTF-8 (lone surrogates)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("text is not valid UTF-8")
    return value


class SetUsernameRequest(BaseModel):
    """Request to set or change the session's display name."""
    type: Literal["setUsername"] = "setUsername"
    username: StrictStr = Field(..., description="Requested display name")

    @field_validator("username")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("username is blank")
        return _encodable(value)


class ChatMessageRequest(BaseModel):
    """Chat text sent by a client. Content is stored trimmed."""
    type: Literal["chatMessage"] = "chatMessage"
    content: StrictStr = Field(..., description="Message text")

    @field_validator("content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content is blank")
        return _encodable(value)


InboundFrame = Union[SetUsernameRequest, ChatMessageRequest]


def parse_frame(raw: str, max_message_length: int) -> InboundFrame:
    """Decode and validate one inbound frame.

    Args:
        raw: Frame text as received from the connection.
        max_message_length: Upper bound on chat content after trimming.

    Returns:
        The validated request model.

    Raises:
        InvalidPayload: The frame is not a JSON object.
        UnknownType: The ``type`` field is missing or not recognised.
        InvalidName: A setUsername frame has no usable username.
        InvalidContent: A chatMessage frame is blank or too long.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        raise InvalidPayload()
    if not isinstance(data, dict):
        raise InvalidPayload()

    frame_type = data.get("type")
    if frame_type == "setUsername":
        try:
            return SetUsernameRequest.model_validate(data)
        except ValidationError:
            raise InvalidName()

    if frame_type == "chatMessage":
        try:
            request = ChatMessageRequest.model_validate(data)
        except ValidationError:
            raise InvalidContent()
        if len(request.content) > max_message_length:
            raise InvalidContent("Chat message is too long.")
        return request

    raise UnknownType(frame_type)


# =============================================================================
# Server → client
# =============================================================================


class ChatMessage(BaseModel):
    """A chat message as stored in history and broadcast to clients.

    The sender label is a snapshot taken at send time; renaming or leaving
    later never rewrites it.
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["chat"] = "chat"
    sender: str = Field(..., description="Sender label at send time")
    content: str = Field(..., description="Trimmed message text")
    timestamp: str = Field(
        default_factory=server_timestamp,
        description="Server-assigned wall-clock time"
    )


class UsernameConfirmed(BaseModel):
    type: Literal["usernameConfirmed"] = "usernameConfirmed"
    username: str


class History(BaseModel):
    type: Literal["history"] = "history"
    messages: List[ChatMessage]


class SystemMessage(BaseModel):
    type: Literal["systemMessage"] = "systemMessage"
    content: str


class UserListUpdate(BaseModel):
    type: Literal["userListUpdate"] = "userListUpdate"
    users: List[str]


class ErrorFrame(BaseModel):
    type: Literal["error"] = "error"
    message: str


OutboundFrame = Union[ChatMessage, UsernameConfirmed, History, SystemMessage, UserListUpdate, ErrorFrame]
