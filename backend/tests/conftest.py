"""Shared test fixtures and configuration for backend tests."""
import json

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState

from app.chat.hub import hub
from app.main import app


class FakeWebSocket:
    """In-process stand-in for a Starlette WebSocket.

    Records every text frame it is sent, decoded from JSON.
    """

    def __init__(self, accepted: bool = True, fail_sends: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = (
            WebSocketState.CONNECTED if accepted else WebSocketState.CONNECTING
        )
        self.fail_sends = fail_sends
        self.sent = []

    async def accept(self):
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, data: str):
        if self.fail_sends:
            raise RuntimeError("connection reset")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000):
        self.application_state = WebSocketState.DISCONNECTED
        self.client_state = WebSocketState.DISCONNECTED

    def types(self):
        return [frame["type"] for frame in self.sent]

    def of_type(self, frame_type: str):
        return [frame for frame in self.sent if frame["type"] == frame_type]


@pytest.fixture
def fake_ws():
    """Factory for FakeWebSocket instances."""
    return FakeWebSocket


@pytest.fixture(autouse=True)
def reset_hub():
    """Start every test with an empty global hub."""
    hub.reset()
    yield
    hub.reset()


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app.

    Entered as a context manager so every WebSocket opened in a test shares
    one event loop, the same way connections share uvicorn's loop.
    """
    with TestClient(app) as test_client:
        yield test_client
