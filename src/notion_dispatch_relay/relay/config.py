"""Configuration for the relay.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

The relay is usable without every credential: Notion, GitHub and Telegram
tokens are validated when a feature needs them, not at startup. To avoid
collisions with other tools that read `GITHUB_TOKEN`, the GitHub token uses a
dedicated variable: `RELAY_GITHUB_TOKEN`.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Settings for the relay core and its collaborators.

    Environment variables:
    - TELEGRAM_BOT_TOKEN, TELEGRAM_ADMIN_USER_ID
    - RELAY_GITHUB_TOKEN, GITHUB_BASE_URL, GITHUB_DISPATCH_EVENT_TYPE
    - NOTION_TOKEN, NOTION_API_BASE_URL
    - TRIGGER_DELAY_MINUTES
    - RELAY_STORE_PATH
    - LOG_LEVEL

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `RelaySettings(_env_file=path_to_env)`.
    """

    telegram_bot_token: str = Field(
        default="",
        validation_alias="TELEGRAM_BOT_TOKEN",
        description="Telegram Bot API token",
    )
    telegram_admin_user_id: str = Field(
        default="",
        validation_alias="TELEGRAM_ADMIN_USER_ID",
        description=(
            "Telegram user id of the admin. Notifications are sent to this chat and "
            "only this user may bind, unbind or list databases."
        ),
    )

    github_token: str = Field(
        default="",
        validation_alias="RELAY_GITHUB_TOKEN",
        description="GitHub token used to send repository_dispatch events",
    )
    github_base_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_BASE_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )
    github_dispatch_event_type: str = Field(
        default="notion-update",
        validation_alias="GITHUB_DISPATCH_EVENT_TYPE",
        description="event_type sent with every repository_dispatch",
    )

    notion_token: str = Field(
        default="",
        validation_alias="NOTION_TOKEN",
        description="Notion integration token",
    )
    notion_api_base_url: str = Field(
        default="https://api.notion.com/v1",
        validation_alias="NOTION_API_BASE_URL",
    )

    trigger_delay_minutes: float = Field(
        default=5,
        ge=0,
        validation_alias="TRIGGER_DELAY_MINUTES",
        description=(
            "Quiet period (minutes) after the most recent Notion update before the "
            "GitHub Action is dispatched. 0 dispatches immediately."
        ),
    )

    store_path: Path = Field(
        default=Path("relay_state/kv.json"),
        validation_alias="RELAY_STORE_PATH",
        description="JSON file backing the key-value store",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def trigger_delay_ms(self) -> int:
        """Debounce window in epoch milliseconds."""

        return int(self.trigger_delay_minutes * 60 * 1000)

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token.strip() and self.telegram_admin_user_id.strip())
