"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the relay services.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from pydantic import ValidationError

from notion_dispatch_relay import __version__
from notion_dispatch_relay.relay.config import RelaySettings
from notion_dispatch_relay.relay.context import RelayContext, build_context
from notion_dispatch_relay.relay.notion.webhook import SIGNATURE_HEADER
from notion_dispatch_relay.relay.storage.kv import StoreError
from notion_dispatch_relay.relay.telegram.bot import BOT_COMMANDS
from notion_dispatch_relay.relay.telegram.client import TelegramApiError
from notion_dispatch_relay.server.config import ServerSettings
from notion_dispatch_relay.server.models import ApiTrigger, SweepResponse, WebhookResponse
from notion_dispatch_relay.server.status_page import render_status_page
from notion_dispatch_relay.server.sweep_runner import SweepRunner

logger = logging.getLogger(__name__)


def create_app(
    *,
    context: RelayContext | None = None,
    server_settings: ServerSettings | None = None,
) -> FastAPI:
    ctx = context or build_context(RelaySettings())
    settings = server_settings or ServerSettings()
    runner = (
        SweepRunner(coordinator=ctx.coordinator, interval_seconds=settings.sweep_interval_seconds)
        if settings.sweep_enabled
        else None
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if runner is not None:
            runner.start()
        try:
            yield
        finally:
            if runner is not None:
                runner.stop()
            ctx.close()

    app = FastAPI(
        title="Notion Dispatch Relay",
        version=__version__,
        description="Debounced Notion -> GitHub repository_dispatch relay with Telegram control.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # Expose wiring for request handlers and tests.
    app.state.context = ctx
    app.state.server_settings = settings
    app.state.sweep_runner = runner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", SIGNATURE_HEADER],
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/notion/webhook", response_model=WebhookResponse)
    async def notion_webhook(request: Request) -> JSONResponse:
        try:
            body: Any = await request.json()
        except ValueError:
            return JSONResponse({"message": "Invalid JSON"}, status_code=400)

        # Handlers block on store and network I/O; keep them off the event loop.
        ack = await run_in_threadpool(
            ctx.notion_webhook.handle, signature=request.headers.get(SIGNATURE_HEADER), body=body
        )
        payload = WebhookResponse(
            message=ack.message,
            status=ack.outcome.status.value if ack.outcome is not None else None,
        )
        return JSONResponse(payload.model_dump(mode="json"), status_code=ack.status_code)

    @app.get("/api/telegram/webhook", include_in_schema=False)
    def telegram_webhook_get() -> PlainTextResponse:
        return PlainTextResponse("Send Telegram updates with POST", status_code=405)

    @app.post("/api/telegram/webhook")
    async def telegram_webhook(request: Request) -> PlainTextResponse:
        if ctx.bot is None:
            return PlainTextResponse("Telegram bot token is not configured", status_code=500)
        try:
            update: Any = await request.json()
        except ValueError:
            return PlainTextResponse("Invalid JSON", status_code=400)
        if not isinstance(update, dict):
            return PlainTextResponse("Invalid update", status_code=400)

        try:
            await run_in_threadpool(ctx.bot.handle_update, update)
        except ValidationError:
            logger.warning("Unsupported Telegram update", extra={"update_id": update.get("update_id")})
            return PlainTextResponse("Unsupported update", status_code=400)
        except (TelegramApiError, StoreError):
            logger.exception("Failed to handle Telegram update")
            return PlainTextResponse("Failed to handle update", status_code=500)
        return PlainTextResponse("OK")

    @app.get("/api/telegram/setup")
    def telegram_setup(request: Request) -> PlainTextResponse:
        if ctx.telegram is None:
            return PlainTextResponse("Telegram bot token is not configured", status_code=500)
        webhook_url = f"{str(request.base_url).rstrip('/')}/api/telegram/webhook"
        try:
            ctx.telegram.set_my_commands(BOT_COMMANDS)
            ctx.telegram.set_webhook(webhook_url)
        except TelegramApiError as e:
            logger.error("Telegram webhook setup failed", extra={"error": str(e)})
            return PlainTextResponse(f"Webhook setup failed: {e}", status_code=500)
        return PlainTextResponse("Webhook setup completed")

    @app.post("/api/sweep", response_model=SweepResponse)
    def sweep() -> SweepResponse:
        report = ctx.coordinator.run_scheduled_sweep()
        return SweepResponse.model_validate(report.to_json())

    @app.get("/api/triggers", response_model=list[ApiTrigger])
    def list_triggers() -> list[ApiTrigger]:
        try:
            records = ctx.triggers.list_records()
        except StoreError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        return [ApiTrigger.model_validate(r.model_dump()) for r in records if r.pending]

    @app.get("/", include_in_schema=False)
    def status_page() -> HTMLResponse:
        error: str | None = None
        try:
            databases = ctx.registry.list()
            triggers = ctx.triggers.list_records()
        except StoreError as e:
            logger.warning("Status page could not read the store", extra={"error": str(e)})
            databases, triggers, error = [], [], "Store is unreadable"
        return HTMLResponse(
            render_status_page(
                databases=databases,
                triggers=triggers,
                delay_minutes=ctx.coordinator.policy.delay_minutes,
                error=error,
            )
        )

    return app
