"""Unit tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from notion_dispatch_relay.relay.config import RelaySettings
from notion_dispatch_relay.server.config import ServerSettings

_RELAY_ENV = (
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_ADMIN_USER_ID",
    "RELAY_GITHUB_TOKEN",
    "GITHUB_BASE_URL",
    "GITHUB_DISPATCH_EVENT_TYPE",
    "NOTION_TOKEN",
    "NOTION_API_BASE_URL",
    "TRIGGER_DELAY_MINUTES",
    "RELAY_STORE_PATH",
    "LOG_LEVEL",
    "RELAY_CORS_ORIGINS",
    "RELAY_SWEEP_ENABLED",
    "RELAY_SWEEP_INTERVAL_SECONDS",
)


@pytest.fixture(autouse=True)
def _clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _RELAY_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults_without_credentials() -> None:
    settings = RelaySettings()

    assert settings.github_token == ""
    assert settings.github_base_url == "https://api.github.com"
    assert settings.github_dispatch_event_type == "notion-update"
    assert settings.notion_api_base_url == "https://api.notion.com/v1"
    assert settings.trigger_delay_minutes == 5
    assert settings.trigger_delay_ms == 300_000
    assert settings.store_path == Path("relay_state/kv.json")
    assert settings.telegram_configured is False


def test_settings_loads_from_dotenv(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "TELEGRAM_BOT_TOKEN=123:abc",
                "TELEGRAM_ADMIN_USER_ID=1001",
                "RELAY_GITHUB_TOKEN=ghp-test",
                "TRIGGER_DELAY_MINUTES=0.5",
                "LOG_LEVEL=DEBUG",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = RelaySettings()

    assert settings.github_token == "ghp-test"
    assert settings.trigger_delay_ms == 30_000
    assert settings.log_level == "DEBUG"
    assert settings.telegram_configured is True


def test_environment_overrides_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("TRIGGER_DELAY_MINUTES=10\n", encoding="utf-8")
    monkeypatch.setenv("TRIGGER_DELAY_MINUTES", "0")

    assert RelaySettings().trigger_delay_ms == 0


def test_negative_delay_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRIGGER_DELAY_MINUTES", "-1")

    with pytest.raises(ValidationError):
        RelaySettings()


def test_server_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RELAY_CORS_ORIGINS", "https://a.test, https://b.test,")
    monkeypatch.setenv("RELAY_SWEEP_ENABLED", "false")
    monkeypatch.setenv("RELAY_SWEEP_INTERVAL_SECONDS", "15")

    settings = ServerSettings()

    assert settings.parsed_cors_origins() == ["https://a.test", "https://b.test"]
    assert settings.sweep_enabled is False
    assert settings.sweep_interval_seconds == 15


def test_server_settings_defaults() -> None:
    settings = ServerSettings()

    assert settings.parsed_cors_origins() == ["*"]
    assert settings.sweep_enabled is True
    assert settings.sweep_interval_seconds == 60
