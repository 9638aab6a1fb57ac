"""GitHub collaborator: repository_dispatch delivery."""

__all__: list[str] = []
