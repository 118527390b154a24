"""Tests for settings loading."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from app import config as config_module
from app.config import AppSettings, ChatSettings, get_config, load_config, reset_config


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


def test_defaults_when_file_missing(tmp_path):
    cfg = load_config(settings_path=tmp_path / "missing.yaml")
    assert cfg == AppSettings()
    assert cfg.chat.history_size == 50
    assert cfg.chat.max_username_length == 20
    assert cfg.chat.guest_label_prefix == "Guest-"
    assert cfg.server.port == 8080
    assert cfg.server.ws_path == "/ws"


def test_values_from_yaml(tmp_path):
    settings_file = tmp_path / "chathub.settings.yaml"
    settings_file.write_text(
        "server:\n"
        "  port: 9001\n"
        "chat:\n"
        "  history_size: 10\n"
        "  max_message_length: 500\n"
        "logging:\n"
        "  level: debug\n",
        encoding="utf-8",
    )

    cfg = load_config(settings_path=settings_file)
    assert cfg.server.port == 9001
    assert cfg.chat.history_size == 10
    assert cfg.chat.max_message_length == 500
    assert cfg.chat.max_username_length == 20
    assert cfg.logging.level == "debug"


def test_empty_yaml_file(tmp_path):
    settings_file = tmp_path / "chathub.settings.yaml"
    settings_file.write_text("", encoding="utf-8")
    assert load_config(settings_path=settings_file) == AppSettings()


def test_env_var_selects_settings_file(tmp_path, monkeypatch):
    settings_file = tmp_path / "custom.yaml"
    settings_file.write_text("chat:\n  history_size: 7\n", encoding="utf-8")
    monkeypatch.setenv(config_module.SETTINGS_ENV_VAR, str(settings_file))

    assert load_config().chat.history_size == 7


@pytest.mark.parametrize("field", ["history_size", "max_username_length", "max_message_length"])
def test_limits_must_be_positive(field):
    with pytest.raises(ValidationError):
        ChatSettings(**{field: 0})


def test_get_config_is_cached(monkeypatch, tmp_path):
    monkeypatch.setattr(config_module, "SETTINGS_FILE", Path(tmp_path / "none.yaml"))
    monkeypatch.delenv(config_module.SETTINGS_ENV_VAR, raising=False)

    first = get_config()
    assert get_config() is first

    reset_config()
    assert get_config() is not first
