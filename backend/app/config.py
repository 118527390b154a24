"""Chat hub application configuration.

Loads settings from a single YAML file:
  * chathub.settings.yaml  — server, chat and logging settings

The path can be overridden with the ``CHATHUB_SETTINGS`` environment variable.
A missing file is not an error; every field has a default.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("chathub.settings.yaml")
SETTINGS_ENV_VAR = "CHATHUB_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _default_settings_path() -> Path:
    override = os.environ.get(SETTINGS_ENV_VAR)
    return Path(override) if override else SETTINGS_FILE


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:    str = "0.0.0.0"
    port:    int = 8080
    ws_path: str = "/ws"


class ChatSettings(BaseModel):
    """Limits applied by the hub to sessions, names and messages."""
    history_size:        int = Field(default=50, gt=0)
    max_username_length: int = Field(default=20, gt=0)
    max_message_length:  int = Field(default=2000, gt=0)
    guest_label_prefix:  str = "Guest-"
    # Characters of the uuid4 hex session ID used in guest labels
    guest_label_length:  int = Field(default=8, gt=0, le=32)


class LoggingSettings(BaseModel):
    level: str = "info"


class AppSettings(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    chat:    ChatSettings    = Field(default_factory=ChatSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

_config: Optional[AppSettings] = None


def load_config(settings_path: Optional[Path] = None) -> AppSettings:
    """Load settings from YAML into a fresh *AppSettings* object."""
    path = Path(settings_path) if settings_path else _default_settings_path()
    settings_data = _load_yaml(path)

    app_settings = AppSettings(**settings_data)
    logger.info(
        "Settings loaded (server=%s:%s, history_size=%s, log_level=%s)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.chat.history_size,
        app_settings.logging.level,
    )
    return app_settings


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached settings so the next get_config() reloads them."""
    global _config
    _config = None
