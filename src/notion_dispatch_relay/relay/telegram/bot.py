"""Telegram command surface.

Commands:
- /start, /help
- /list (admin): browse tracked databases
- /bind <database_id> <owner/repo> (admin): track a database and link a repo
- /unbind (admin): pick a database to stop tracking
- /trigger: pick a linked database and dispatch its GitHub Action now

Pickers are inline keyboards, five databases per page. Button presses arrive
as callback queries whose `data` is `<action>_<database id>` or
`<action>_page_<n>`.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from notion_dispatch_relay.relay.github.dispatch import GitHubDispatcher
from notion_dispatch_relay.relay.notion.client import NotionApiError, NotionClient
from notion_dispatch_relay.relay.registry import (
    DatabaseRegistry,
    DispatchTarget,
    InvalidDispatchTarget,
    TrackedDatabase,
)
from notion_dispatch_relay.relay.storage.kv import StoreError
from notion_dispatch_relay.relay.telegram.client import InlineKeyboard, TelegramClient
from notion_dispatch_relay.relay.triggers.coordinator import DispatchCoordinator, UpdateStatus

logger = logging.getLogger(__name__)

PAGE_SIZE = 5

DATABASE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]{32}$")

BOT_COMMANDS: list[tuple[str, str]] = [
    ("start", "Get started"),
    ("help", "Show help"),
    ("list", "List tracked Notion databases"),
    ("bind", "Track a Notion database and link it to a GitHub repository"),
    ("unbind", "Stop tracking a Notion database"),
    ("trigger", "Trigger the GitHub repository_dispatch event now"),
]

HELP_TEXT = """📝 Available commands:

/list - list tracked Notion databases
/bind [database_id] [owner/repo] - track a database and link a GitHub repository
/unbind - stop tracking a database
/trigger - trigger the linked GitHub Action now

Notes:
1. The database id is the 32-character id in the Notion database URL
2. Binding, unbinding and listing require admin rights
3. Updates are debounced: the Action runs once edits have been quiet for the configured delay"""


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    chat: TelegramChat
    from_user: TelegramUser | None = Field(default=None, alias="from")
    text: str | None = None


class TelegramCallbackQuery(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    from_user: TelegramUser = Field(alias="from")
    message: TelegramMessage | None = None
    data: str | None = None


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: TelegramMessage | None = None
    callback_query: TelegramCallbackQuery | None = None


def database_buttons(
    databases: list[TrackedDatabase], action: str, page: int = 1
) -> InlineKeyboard:
    keyboard = InlineKeyboard()
    start = (page - 1) * PAGE_SIZE
    end = start + PAGE_SIZE
    for db in databases[start:end]:
        keyboard.text(db.display_name, f"{action}_{db.id}").row()
    if page > 1:
        keyboard.text("⬅️ Previous", f"{action}_page_{page - 1}")
    if end < len(databases):
        keyboard.text("Next ➡️", f"{action}_page_{page + 1}")
    return keyboard


def _details(database: TrackedDatabase) -> str:
    return (
        f"Name: {database.display_name}\n"
        f"ID: {database.id}\n"
        f"Repository: {database.github_repo_id or 'not linked'}\n"
        f"Last updated: {database.updated_at}\n"
        f"Last synced: {database.last_synced}"
    )


def _page_number(value: str) -> int:
    try:
        return max(1, int(value))
    except ValueError:
        return 1


class TelegramBot:
    def __init__(
        self,
        *,
        client: TelegramClient,
        registry: DatabaseRegistry,
        coordinator: DispatchCoordinator,
        dispatcher: GitHubDispatcher,
        notion: NotionClient | None,
        admin_user_id: str,
    ) -> None:
        self._client = client
        self._registry = registry
        self._coordinator = coordinator
        self._dispatcher = dispatcher
        self._notion = notion
        self._admin_user_id = admin_user_id.strip()

    def _is_admin(self, user: TelegramUser | None) -> bool:
        return bool(self._admin_user_id) and user is not None and str(user.id) == self._admin_user_id

    def handle_update(self, raw: dict[str, Any]) -> None:
        update = TelegramUpdate.model_validate(raw)
        if update.callback_query is not None:
            self._handle_callback(update.callback_query)
        elif update.message is not None:
            self._handle_message(update.message)

    # -- commands -----------------------------------------------------------

    def _handle_message(self, message: TelegramMessage) -> None:
        text = (message.text or "").strip()
        if not text.startswith("/"):
            self._reply(message, "❓ Unknown command, use /help to see available commands.")
            return

        command, *args = text.split()
        # "/bind@my_bot" addresses this bot in group chats.
        command = command[1:].split("@", 1)[0].lower()
        handler = {
            "start": self._cmd_start,
            "help": self._cmd_help,
            "list": self._cmd_list,
            "bind": self._cmd_bind,
            "unbind": self._cmd_unbind,
            "trigger": self._cmd_trigger,
        }.get(command)
        if handler is None:
            logger.info("Unknown command", extra={"command": command})
            self._reply(message, "❓ Unknown command, use /help to see available commands.")
            return
        try:
            handler(message, args)
        except StoreError:
            logger.exception("Command failed", extra={"command": command})
            self._reply(message, "❌ Failed to load databases, please try again later.")

    def _reply(
        self, message: TelegramMessage, text: str, keyboard: InlineKeyboard | None = None
    ) -> None:
        self._client.send_message(message.chat.id, text, reply_markup=keyboard)

    def _cmd_start(self, message: TelegramMessage, _args: list[str]) -> None:
        self._reply(message, "👋 Welcome to the Notion dispatch relay!\n\nUse /help to see commands.")

    def _cmd_help(self, message: TelegramMessage, _args: list[str]) -> None:
        self._reply(message, HELP_TEXT)

    def _cmd_list(self, message: TelegramMessage, _args: list[str]) -> None:
        if not self._is_admin(message.from_user):
            self._reply(message, "⚠️ Only the admin can list databases.")
            return
        databases = self._registry.list()
        if not databases:
            self._reply(message, "📝 No databases yet.")
            return
        self._reply(message, "📚 Databases:", database_buttons(databases, "list_dbs"))

    def _cmd_bind(self, message: TelegramMessage, args: list[str]) -> None:
        if not self._is_admin(message.from_user):
            self._reply(message, "⚠️ Only the admin can bind databases.")
            return
        if len(args) != 2:
            self._reply(
                message,
                "❓ Usage: /bind [database_id] [owner/repo]\n\n"
                "The database id is the 32-character id in the Notion database URL.",
            )
            return

        database_id, repo_id = args
        if not DATABASE_ID_PATTERN.match(database_id):
            self._reply(message, "❌ Invalid database id. Expected 32 letters or digits.")
            return
        try:
            target = DispatchTarget.parse(repo_id)
        except InvalidDispatchTarget:
            self._reply(message, "❌ Invalid repository. Expected owner/repo.")
            return

        try:
            existing = self._registry.find(database_id)
            if existing is not None:
                updated = self._registry.bind(database_id, target.full_name)
                self._reply(
                    message,
                    f"✅ Linked database {updated.display_name} to GitHub repository {target.full_name}",
                )
                return

            if self._notion is None:
                self._reply(message, "❌ Notion token is not configured.")
                return
            try:
                info = self._notion.retrieve_database(database_id)
            except NotionApiError:
                self._reply(
                    message,
                    "❌ Could not fetch the Notion database. Check that:\n"
                    "1. The database id is correct\n"
                    "2. The Notion integration has access to the database",
                )
                return

            if not self._dispatcher.verify_access(target):
                self._reply(
                    message,
                    "❌ GitHub repository check failed. Check that:\n"
                    "1. The repository name is correct\n"
                    "2. The GitHub token can access the repository",
                )
                return

            self._registry.upsert(
                TrackedDatabase(
                    id=database_id,
                    name=info.title,
                    title=info.title,
                    url=info.url,
                    github_repo_id=target.full_name,
                )
            )
            self._reply(
                message,
                f"✅ Added database {info.title} and linked it to GitHub repository {target.full_name}",
            )
        except StoreError:
            logger.exception("Failed to bind database", extra={"database_id": database_id})
            self._reply(message, "❌ Failed to save the database, please try again later.")

    def _cmd_unbind(self, message: TelegramMessage, _args: list[str]) -> None:
        if not self._is_admin(message.from_user):
            self._reply(message, "⚠️ Only the admin can remove databases.")
            return
        databases = self._registry.list()
        if not databases:
            self._reply(message, "📝 No databases yet.")
            return
        self._reply(
            message, "🗑 Choose a database to remove:", database_buttons(databases, "remove_db")
        )

    def _cmd_trigger(self, message: TelegramMessage, _args: list[str]) -> None:
        linked = self._registry.linked()
        if not linked:
            self._reply(message, "📝 No database is linked to a GitHub repository.")
            return
        self._reply(message, "Choose a database to trigger:", database_buttons(linked, "trigger"))

    # -- callback queries ---------------------------------------------------

    def _handle_callback(self, query: TelegramCallbackQuery) -> None:
        data = query.data or ""
        logger.info("Callback query received", extra={"data": data})
        if query.message is None or not data:
            self._client.answer_callback_query(query.id)
            return

        routes = [
            ("list_dbs_page_", self._cb_list_page),
            ("list_dbs_", self._cb_list_details),
            ("trigger_page_", self._cb_trigger_page),
            ("trigger_", self._cb_trigger_details),
            ("remove_db_page_", self._cb_remove_page),
            ("remove_db_", self._cb_remove_details),
            ("confirm_remove_", self._cb_confirm_remove),
            ("confirm_trigger_", self._cb_confirm_trigger),
        ]
        try:
            for prefix, handler in routes:
                if data.startswith(prefix):
                    handler(query, query.message, data[len(prefix) :])
                    return
            self._client.answer_callback_query(query.id)
        except StoreError:
            logger.exception("Callback query failed", extra={"data": data})
            self._client.answer_callback_query(query.id, text="❌ Operation failed, please retry")

    def _edit(
        self, message: TelegramMessage, text: str, keyboard: InlineKeyboard | None = None
    ) -> None:
        self._client.edit_message_text(message.chat.id, message.message_id, text, reply_markup=keyboard)

    def _lookup(self, query: TelegramCallbackQuery, database_id: str) -> TrackedDatabase | None:
        database = self._registry.find(database_id)
        if database is None:
            logger.warning("Database not found", extra={"database_id": database_id})
            self._client.answer_callback_query(query.id, text="❌ Database not found")
        return database

    def _cb_list_page(self, query: TelegramCallbackQuery, message: TelegramMessage, arg: str) -> None:
        keyboard = database_buttons(self._registry.list(), "list_dbs", _page_number(arg))
        self._edit(message, "📚 Databases:", keyboard)
        self._client.answer_callback_query(query.id)

    def _cb_list_details(
        self, query: TelegramCallbackQuery, message: TelegramMessage, database_id: str
    ) -> None:
        database = self._lookup(query, database_id)
        if database is None:
            return
        keyboard = InlineKeyboard().text("⬅️ Back to list", "list_dbs_page_1").row()
        if database.github_repo_id:
            keyboard.text("🚀 Trigger Action", f"confirm_trigger_{database.id}").row()
        keyboard.text("❌ Remove database", f"confirm_remove_{database.id}").row()
        self._edit(message, "📝 Database details:\n\n" + _details(database), keyboard)
        self._client.answer_callback_query(query.id)

    def _cb_trigger_page(
        self, query: TelegramCallbackQuery, message: TelegramMessage, arg: str
    ) -> None:
        linked = self._registry.linked()
        if not linked:
            self._edit(message, "📝 No database is linked to a GitHub repository.")
        else:
            self._edit(
                message,
                "Choose a database to trigger:",
                database_buttons(linked, "trigger", _page_number(arg)),
            )
        self._client.answer_callback_query(query.id)

    def _cb_trigger_details(
        self, query: TelegramCallbackQuery, message: TelegramMessage, database_id: str
    ) -> None:
        database = self._lookup(query, database_id)
        if database is None:
            return
        keyboard = (
            InlineKeyboard()
            .text("⬅️ Back to list", "trigger_page_1")
            .row()
            .text("🚀 Confirm trigger", f"confirm_trigger_{database.id}")
        )
        self._edit(message, "📝 Database details:\n\n" + _details(database), keyboard)
        self._client.answer_callback_query(query.id)

    def _cb_remove_page(
        self, query: TelegramCallbackQuery, message: TelegramMessage, arg: str
    ) -> None:
        keyboard = database_buttons(self._registry.list(), "remove_db", _page_number(arg))
        self._edit(message, "🗑 Choose a database to remove:", keyboard)
        self._client.answer_callback_query(query.id)

    def _cb_remove_details(
        self, query: TelegramCallbackQuery, message: TelegramMessage, database_id: str
    ) -> None:
        database = self._lookup(query, database_id)
        if database is None:
            return
        keyboard = (
            InlineKeyboard()
            .text("⬅️ Back to list", "remove_db_page_1")
            .row()
            .text("❌ Confirm removal", f"confirm_remove_{database.id}")
        )
        self._edit(
            message,
            "⚠️ Remove this database?\n\n"
            f"Name: {database.display_name}\n"
            f"ID: {database.id}\n"
            f"Repository: {database.github_repo_id or 'not linked'}\n\n"
            "This cannot be undone!",
            keyboard,
        )
        self._client.answer_callback_query(query.id)

    def _cb_confirm_remove(
        self, query: TelegramCallbackQuery, message: TelegramMessage, database_id: str
    ) -> None:
        database = self._lookup(query, database_id)
        if database is None:
            return
        if not self._is_admin(query.from_user):
            logger.warning("Non-admin tried to remove a database", extra={"user_id": query.from_user.id})
            self._client.answer_callback_query(query.id, text="⚠️ Only the admin can do this")
            return

        self._registry.remove(database.id)
        self._coordinator.forget(database.id)

        remaining = self._registry.list()
        if not remaining:
            self._edit(message, "✅ Database removed.\n\nNo databases left.")
        else:
            self._edit(
                message,
                f"✅ Removed database: {database.display_name}\n\nDatabases:",
                database_buttons(remaining, "list_dbs"),
            )
        self._client.answer_callback_query(query.id)

    def _cb_confirm_trigger(
        self, query: TelegramCallbackQuery, message: TelegramMessage, database_id: str
    ) -> None:
        database = self._lookup(query, database_id)
        if database is None:
            return
        if database.dispatch_target is None:
            self._client.answer_callback_query(
                query.id, text="⚠️ This database has no linked GitHub repository"
            )
            return

        outcome = self._coordinator.trigger_now(database.id)
        if outcome.status is not UpdateStatus.FIRED:
            logger.error(
                "Manual trigger failed",
                extra={"database_id": database.id, "error": outcome.message},
            )
            self._client.answer_callback_query(query.id, text="❌ Failed to trigger GitHub Action")
            return

        self._edit(
            message,
            f"✅ Triggered GitHub Action: {database.display_name}\n\nDatabases:",
            database_buttons(self._registry.list(), "list_dbs"),
        )
        self._client.answer_callback_query(query.id, text="✅ GitHub Action triggered")
