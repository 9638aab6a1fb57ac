"""Notion collaborator: metadata lookups and webhook payload handling."""

__all__: list[str] = []
