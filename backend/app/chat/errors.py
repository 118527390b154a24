"""Error types raised by the chat hub.

User-facing errors (InvalidPayload, InvalidName, InvalidContent, UnknownType)
are reported to the originating connection as an ``error`` frame. NotFound and
TransportFailure are internal and never reach a client.
"""


class ChatError(Exception):
    """Base exception for chat hub errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidPayload(ChatError):
    """Raised when a frame is not a JSON object."""
    def __init__(self, message: str = "Invalid JSON format."):
        super().__init__(message)


class InvalidName(ChatError):
    """Raised when a requested display name is missing or blank."""
    def __init__(self, message: str = "Invalid username provided."):
        super().__init__(message)


class InvalidContent(ChatError):
    """Raised when chat text is missing, blank or too long."""
    def __init__(self, message: str = "Chat message content cannot be empty."):
        super().__init__(message)


class UnknownType(ChatError):
    """Raised when a frame's ``type`` is not one the hub understands."""
    def __init__(self, frame_type: object = None):
        self.frame_type = frame_type
        super().__init__("Unknown message type.")


class NotFound(ChatError):
    """Raised when a connection has no session in the registry."""
    def __init__(self, message: str = "Session not found."):
        super().__init__(message)


class TransportFailure(ChatError):
    """Raised when a frame could not be delivered to one connection."""
    def __init__(self, message: str, session_id: str = ""):
        self.session_id = session_id
        super().__init__(message)
