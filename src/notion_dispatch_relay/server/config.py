"""Configuration for the HTTP server."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Settings for the HTTP surface and the in-process sweep loop."""

    cors_origins: str = Field(
        default="*",
        validation_alias="RELAY_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    sweep_enabled: bool = Field(
        default=True,
        validation_alias="RELAY_SWEEP_ENABLED",
        description=(
            "If true, the server runs the delayed-trigger sweep on a background thread. "
            "Disable when an external scheduler calls POST /api/sweep or `notion-relay sweep`."
        ),
    )
    sweep_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        validation_alias="RELAY_SWEEP_INTERVAL_SECONDS",
        description="Seconds between background sweeps.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
