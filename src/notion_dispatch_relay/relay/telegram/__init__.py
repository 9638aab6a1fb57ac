"""Telegram collaborator: Bot API client, admin notifier and command bot."""

__all__: list[str] = []
