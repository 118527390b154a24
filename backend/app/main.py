"""Chat Hub Backend Application.

This is the main entry point for the broadcast chat service. Clients connect
over a WebSocket, optionally pick a display name, and exchange short text
messages with everyone online.

Modules:
    - chat: WebSocket hub (registry, history buffer, broadcast router)
    - config: YAML-backed settings
    - client: Terminal client with reconnect backoff
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from app.chat.router import router as chat_router
from app.config import get_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence per-connection noise from the server stack.
for _noisy in (
    "uvicorn.access",
    "websockets",
    "httpx",
    "httpcore",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in chathub.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    logger.info(
        f"Chat hub listening on ws://{config.server.host}:{config.server.port}"
        f"{config.server.ws_path} (history_size={config.chat.history_size})"
    )

    yield  # Application runs here

    # Shutdown
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Chat Hub API",
    description="Real-time broadcast chat over WebSockets",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(chat_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}


def run() -> None:
    """Start the server with the configured host and port."""
    config = get_config()
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    run()
