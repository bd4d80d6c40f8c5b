"""GitHub API client wrapper.

Wraps PyGithub (listing) and a plain ``requests`` session (single-issue REST
reads) so that GitHub calls stay out of the batch and tool code, and so tests
can substitute a ``Mock(spec=GitHubClient)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import requests
from github import Auth, Github
from github.Repository import Repository

from pm_intelligence.batch import CandidateItem

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


@dataclass(frozen=True, slots=True)
class GitHubIssue:
    """Issue metadata needed to mirror an issue locally."""

    number: int
    title: str
    body: str | None
    state: str
    author: str | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class GitHubClient:
    """Small wrapper around PyGithub for the reads this project needs."""

    def __init__(
        self,
        *,
        token: str,
        repository: str,
        base_url: str = "https://api.github.com",
        repo: Repository | None = None,
        github_api: Github | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")
        if not repository:
            raise ValueError("GitHub repository is required")

        self._repository_name = repository
        self._rest_base_url = base_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "pm-intelligence",
            }
        )

        if repo is not None:
            self._repo = repo
            self._github = None
            logger.debug("Using injected Repository instance")
            return

        auth = Auth.Token(token)
        self._github = github_api or Github(auth=auth, base_url=base_url)
        self._repo = self._github.get_repo(repository)
        logger.info(
            "Authenticated with GitHub and connected to repository", extra={"repo": repository}
        )

    @property
    def repository(self) -> str:
        return self._repository_name

    def _issues_url(self, *, issue_number: int) -> str:
        if issue_number <= 0:
            raise ValueError("issue_number must be a positive integer")
        return f"{self._rest_base_url}/repos/{self._repository_name}/issues/{issue_number}"

    @staticmethod
    def _to_issue(raw: Any) -> GitHubIssue:
        user = getattr(raw, "user", None)
        return GitHubIssue(
            number=raw.number,
            title=raw.title or "",
            body=raw.body,
            state=(raw.state or "open").lower(),
            author=getattr(user, "login", None),
            created_at=_to_utc(raw.created_at) or datetime.now(tz=UTC),
            updated_at=_to_utc(raw.updated_at) or datetime.now(tz=UTC),
            closed_at=_to_utc(raw.closed_at),
            labels=[label.name for label in raw.labels],
            assignees=[a.login for a in raw.assignees],
        )

    def list_issues(
        self, *, state: str = "all", limit: int = 200, since: datetime | None = None
    ) -> list[GitHubIssue]:
        """List issues (pull requests excluded), most recently updated first."""

        kwargs: dict[str, Any] = {"state": state, "sort": "updated", "direction": "desc"}
        if since is not None:
            kwargs["since"] = since

        issues: list[GitHubIssue] = []
        for raw in self._repo.get_issues(**kwargs):
            # The issues endpoint also returns pull requests.
            if raw.pull_request is not None:
                continue
            issues.append(self._to_issue(raw))
            if len(issues) >= limit:
                break
        return issues

    def list_candidates(self, limit: int) -> list[CandidateItem]:
        """Open issues as batch classification candidates, facets = label names."""

        return [
            CandidateItem(item_id=issue.number, title=issue.title, facets=list(issue.labels))
            for issue in self.list_issues(state="open", limit=limit)
        ]

    def get_issue_body(self, issue_number: int) -> str:
        """Fetch the current body of one issue via REST."""

        resp = self._session.get(
            self._issues_url(issue_number=issue_number), timeout=DEFAULT_TIMEOUT_SECONDS
        )
        resp.raise_for_status()
        data: dict[str, Any] = resp.json()
        body = data.get("body")
        return body.strip() if isinstance(body, str) else ""

    def close(self) -> None:
        self._session.close()
        if self._github is not None:
            self._github.close()
