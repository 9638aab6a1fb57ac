"""Explicit wiring of relay components.

Every component receives its collaborators at construction; nothing is a
module-level singleton. The server and the CLI each build one context; tests
build a fresh one per case with fakes swapped in.
"""

from __future__ import annotations

from dataclasses import dataclass

from notion_dispatch_relay.relay.config import RelaySettings
from notion_dispatch_relay.relay.github.dispatch import GitHubDispatcher
from notion_dispatch_relay.relay.notion.client import NotionClient
from notion_dispatch_relay.relay.notion.webhook import NotionWebhookHandler
from notion_dispatch_relay.relay.registry import DatabaseRegistry
from notion_dispatch_relay.relay.storage.kv import JsonFileKeyValueStore, KeyValueStore
from notion_dispatch_relay.relay.telegram.bot import TelegramBot
from notion_dispatch_relay.relay.telegram.client import TelegramClient
from notion_dispatch_relay.relay.telegram.notifier import Notifier, TelegramNotifier
from notion_dispatch_relay.relay.triggers.coordinator import DispatchCoordinator
from notion_dispatch_relay.relay.triggers.policy import Clock, DebouncePolicy, epoch_millis
from notion_dispatch_relay.relay.triggers.store import TriggerStore


@dataclass(slots=True)
class RelayContext:
    settings: RelaySettings
    kv: KeyValueStore
    registry: DatabaseRegistry
    triggers: TriggerStore
    dispatcher: GitHubDispatcher
    notifier: Notifier
    coordinator: DispatchCoordinator
    notion_webhook: NotionWebhookHandler
    telegram: TelegramClient | None
    notion: NotionClient | None
    bot: TelegramBot | None

    def close(self) -> None:
        self.dispatcher.close()


def build_context(
    settings: RelaySettings,
    *,
    kv: KeyValueStore | None = None,
    dispatcher: GitHubDispatcher | None = None,
    telegram: TelegramClient | None = None,
    notifier: Notifier | None = None,
    notion: NotionClient | None = None,
    clock: Clock = epoch_millis,
) -> RelayContext:
    kv = kv if kv is not None else JsonFileKeyValueStore(settings.store_path)
    registry = DatabaseRegistry(kv)
    triggers = TriggerStore(kv)

    if dispatcher is None:
        dispatcher = GitHubDispatcher(
            token=settings.github_token,
            base_url=settings.github_base_url,
            event_type=settings.github_dispatch_event_type,
        )
    if telegram is None and settings.telegram_bot_token.strip():
        telegram = TelegramClient(token=settings.telegram_bot_token)
    if notifier is None:
        notifier = TelegramNotifier(client=telegram, admin_chat_id=settings.telegram_admin_user_id)
    if notion is None and settings.notion_token.strip():
        notion = NotionClient(token=settings.notion_token, base_url=settings.notion_api_base_url)

    coordinator = DispatchCoordinator(
        registry=registry,
        triggers=triggers,
        policy=DebouncePolicy(delay_ms=settings.trigger_delay_ms),
        dispatcher=dispatcher,
        notifier=notifier,
        clock=clock,
    )
    bot = (
        TelegramBot(
            client=telegram,
            registry=registry,
            coordinator=coordinator,
            dispatcher=dispatcher,
            notion=notion,
            admin_user_id=settings.telegram_admin_user_id,
        )
        if telegram is not None
        else None
    )
    return RelayContext(
        settings=settings,
        kv=kv,
        registry=registry,
        triggers=triggers,
        dispatcher=dispatcher,
        notifier=notifier,
        coordinator=coordinator,
        notion_webhook=NotionWebhookHandler(coordinator=coordinator, notifier=notifier),
        telegram=telegram,
        notion=notion,
        bot=bot,
    )
