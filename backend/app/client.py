"""Terminal client for the chat hub.

Keeps a connection to the hub open, reconnecting with increasing backoff
(1s, 2s, 5s, 10s, 30s, then 30s) whenever it drops. The chosen display name
is re-sent after every reconnect, since the hub treats each connection as a
new session.

Usage:
    chathub-client --url ws://localhost:8080/ws --name Alice

Input lines are sent as chat messages. ``/name <new name>`` changes the
display name and ``/quit`` exits.
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Callable, Optional

import websockets

logger = logging.getLogger(__name__)

# Seconds to wait before reconnect attempt N (last value repeats)
RECONNECT_INTERVALS = (1, 2, 5, 10, 30)

DEFAULT_URL = "ws://localhost:8080/ws"


def reconnect_delay(attempt: int) -> int:
    """Backoff delay in seconds before the given reconnect attempt (0-based)."""
    return RECONNECT_INTERVALS[min(attempt, len(RECONNECT_INTERVALS) - 1)]


def _format_chat(message: dict, username: Optional[str]) -> str:
    sender = message.get("sender", "?")
    mine = " (you)" if username and sender == username else ""
    return f"[{message.get('timestamp', '')}] {sender}{mine}: {message.get('content', '')}"


def format_frame(frame: dict, username: Optional[str] = None) -> Optional[str]:
    """Render a server frame as terminal text.

    Args:
        frame: Decoded server frame.
        username: The client's confirmed name, used to mark its own messages.

    Returns:
        Text to display, or None for frames with nothing to show.
    """
    frame_type = frame.get("type")
    if frame_type == "chat":
        return _format_chat(frame, username)
    if frame_type == "history":
        return "\n".join(_format_chat(msg, username) for msg in frame.get("messages", []))
    if frame_type == "systemMessage":
        return f"* {frame.get('content', '')}"
    if frame_type == "userListUpdate":
        return f"Online: {', '.join(frame.get('users', []))}"
    if frame_type == "usernameConfirmed":
        return f"You are now known as {frame.get('username')}"
    if frame_type == "error":
        return f"Error: {frame.get('message', '')}"
    logger.warning(f"[Client] Unknown frame type: {frame_type}")
    return None


class ChatClient:
    """Reconnecting chat connection.

    Attributes:
        url: Hub WebSocket URL.
        username: Display name to (re)claim on every connect.
        attempt: Reconnect attempts since the last successful connect.
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        username: Optional[str] = None,
        output: Callable[[str], None] = print,
    ) -> None:
        self.url = url
        self.username = username
        self.output = output
        self.attempt = 0
        self._ws = None
        self._stopped = False

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def run(self) -> None:
        """Connect and process frames until stop() is called."""
        while not self._stopped:
            try:
                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    self.attempt = 0
                    self.output("Connected!")
                    if self.username:
                        await self._send({"type": "setUsername", "username": self.username})
                    async for raw in ws:
                        self.handle_frame(raw)
            except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
                logger.debug(f"[Client] Connection lost: {e}")
            finally:
                self._ws = None

            if self._stopped:
                break
            delay = reconnect_delay(self.attempt)
            self.attempt += 1
            self.output(f"Disconnected. Reconnecting in {delay}s...")
            await asyncio.sleep(delay)

    async def stop(self) -> None:
        self._stopped = True
        if self._ws is not None:
            await self._ws.close()

    def handle_frame(self, raw) -> Optional[str]:
        """Apply and display one server frame."""
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.warning(f"[Client] Ignoring malformed frame: {raw!r}")
            return None

        if not isinstance(frame, dict):
            logger.warning(f"[Client] Ignoring non-object frame: {raw!r}")
            return None

        if frame.get("type") == "usernameConfirmed":
            self.username = frame.get("username")

        text = format_frame(frame, self.username)
        if text:
            self.output(text)
        return text

    async def send_chat(self, text: str) -> bool:
        """Send chat text. Blank text or no connection sends nothing."""
        text = text.strip()
        if not text or not self.connected:
            return False
        await self._send({"type": "chatMessage", "content": text})
        return True

    async def set_username(self, name: str) -> bool:
        """Request a display name.

        While connected the name is adopted only once the hub confirms it.
        While offline it is stored and claimed on the next connect.
        """
        name = name.strip()
        if not name:
            return False
        if not self.connected:
            self.username = name
            return False
        await self._send({"type": "setUsername", "username": name})
        return True

    async def _send(self, frame: dict) -> None:
        try:
            await self._ws.send(json.dumps(frame))
        except websockets.ConnectionClosed as e:
            logger.debug(f"[Client] Send failed: {e}")


async def _read_input(client: ChatClient) -> None:
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line or line.strip() == "/quit":
            await client.stop()
            return
        if line.startswith("/name "):
            await client.set_username(line[len("/name "):])
        elif line.strip() and not await client.send_chat(line):
            client.output("Not connected; message not sent.")


async def _main(url: str, name: Optional[str]) -> None:
    client = ChatClient(url, name)
    await asyncio.gather(client.run(), _read_input(client))


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat hub terminal client")
    parser.add_argument("--url", type=str, default=DEFAULT_URL,
                        help=f"Hub WebSocket URL (default: {DEFAULT_URL})")
    parser.add_argument("--name", type=str, default=None,
                        help="Display name to use (default: guest label)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(message)s")
    try:
        asyncio.run(_main(args.url, args.name))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
