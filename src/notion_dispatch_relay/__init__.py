"""Notion dispatch relay.

Listens for Notion database-change webhooks and Telegram bot commands and turns
them into GitHub ``repository_dispatch`` events:
- debounced per database, so a burst of edits triggers one workflow run
- persisted in a small key-value store and advanced by a periodic sweep
- reported back to a Telegram admin chat
"""

__version__ = "0.1.0"

from notion_dispatch_relay.relay.config import RelaySettings

__all__ = ["__version__", "RelaySettings"]
