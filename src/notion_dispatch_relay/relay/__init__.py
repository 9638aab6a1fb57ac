"""Relay business logic: debounce state, collaborators and the CLI.

Server-specific concerns (routing, CORS, background sweep thread) live in
``notion_dispatch_relay.server``.
"""

__all__: list[str] = []
