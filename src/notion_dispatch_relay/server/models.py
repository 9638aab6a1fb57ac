"""Pydantic models for the REST server."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WebhookResponse(BaseModel):
    message: str
    status: str | None = None


class SweepResponse(BaseModel):
    checked: int
    fired: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    waiting: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)


class ApiTrigger(BaseModel):
    entity_id: str
    next_trigger_time: int
    pending: bool
    updated_at: int
