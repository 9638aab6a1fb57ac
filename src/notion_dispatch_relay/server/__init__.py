"""FastAPI server adapter for the Notion dispatch relay.

Design intent:
- Keep business logic in `notion_dispatch_relay.relay.*`
- Keep server-specific concerns (routing, CORS, background sweep) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from notion_dispatch_relay.server.app import create_app
