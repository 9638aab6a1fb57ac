"""GitHub `repository_dispatch` sender.

This wraps PyGithub so the coordinator only ever sees a `DispatchResult`.
Any API or transport error is reported as a failed result; the caller keeps the
trigger pending and the next sweep retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

import requests
from github import Auth, Github, GithubException

from notion_dispatch_relay.relay.registry import DispatchTarget

logger = logging.getLogger(__name__)

DISPATCH_SOURCE = "notion-dispatch-relay"


@dataclass(frozen=True, slots=True)
class DispatchResult:
    ok: bool
    message: str


class GitHubDispatcher:
    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://api.github.com",
        event_type: str = "notion-update",
        github_api: Github | None = None,
    ) -> None:
        self._token = token.strip()
        self._base_url = base_url.rstrip("/")
        self._event_type = event_type
        self._github = github_api

    @property
    def configured(self) -> bool:
        return self._github is not None or bool(self._token)

    def _api(self) -> Github:
        if self._github is None:
            if not self._token:
                raise ValueError("GitHub token is required")
            self._github = Github(auth=Auth.Token(self._token), base_url=self._base_url)
        return self._github

    def dispatch(self, target: DispatchTarget, *, database_id: str | None = None) -> DispatchResult:
        if not self.configured:
            logger.error("GitHub token is not configured", extra={"repo": target.full_name})
            return DispatchResult(ok=False, message="GitHub token is not configured")

        client_payload: dict[str, object] = {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "source": DISPATCH_SOURCE,
        }
        if database_id:
            client_payload["database_id"] = database_id

        logger.info(
            "Sending repository_dispatch",
            extra={"repo": target.full_name, "event_type": self._event_type},
        )
        try:
            repo = self._api().get_repo(target.full_name)
            accepted = repo.create_repository_dispatch(self._event_type, client_payload)
        except GithubException as e:
            message = _github_error_message(e)
            logger.error(
                "repository_dispatch rejected",
                extra={"repo": target.full_name, "status": e.status, "error": message},
            )
            return DispatchResult(ok=False, message=message)
        except requests.RequestException as e:
            logger.error(
                "repository_dispatch transport error",
                extra={"repo": target.full_name, "error": str(e)},
            )
            return DispatchResult(ok=False, message=str(e))

        if not accepted:
            return DispatchResult(ok=False, message="GitHub did not accept the dispatch")
        logger.info("repository_dispatch accepted", extra={"repo": target.full_name})
        return DispatchResult(ok=True, message=f"Dispatched {self._event_type} to {target.full_name}")

    def verify_access(self, target: DispatchTarget) -> bool:
        """Return True when the token can see the repository."""

        if not self.configured:
            return False
        try:
            self._api().get_repo(target.full_name)
        except GithubException as e:
            logger.warning(
                "Repository is not accessible",
                extra={"repo": target.full_name, "status": e.status},
            )
            return False
        except requests.RequestException as e:
            logger.warning(
                "Repository check failed", extra={"repo": target.full_name, "error": str(e)}
            )
            return False
        return True

    def close(self) -> None:
        if self._github is not None:
            self._github.close()


def _github_error_message(e: GithubException) -> str:
    data = e.data
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, str) and message:
            return message
    return f"GitHub API error ({e.status})"
