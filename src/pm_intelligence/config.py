"""Configuration for pm-intelligence.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

To avoid collisions with other tools that may also use `GITHUB_TOKEN`, the token
is read from `ORCHESTRATOR_GITHUB_TOKEN`. The token is optional at load time so
that local-only commands (board, bulk-move) work without credentials; commands
that talk to GitHub call :meth:`PMSettings.require_github`.
"""

from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pm_intelligence.metrics import DEFAULT_SLOW_CALL_THRESHOLD_MS

_REMOTE_RE = re.compile(r"github\.com[:/]([^/]+)/([^/\s]+?)(?:\.git)?/?$")


def parse_repository_from_remote(url: str) -> str | None:
    """Return ``owner/repo`` from a GitHub remote URL (https or ssh)."""

    match = _REMOTE_RE.search(url.strip())
    if match is None:
        return None
    return f"{match.group(1)}/{match.group(2)}"


def detect_repository_from_git(cwd: Path | None = None) -> str | None:
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return None
    if result.returncode != 0:
        return None
    return parse_repository_from_remote(result.stdout)


class PMSettings(BaseSettings):
    """Settings for pm-intelligence.

    Environment variables:
    - ORCHESTRATOR_GITHUB_TOKEN  (required for GitHub-backed commands)
    - PM_REPOSITORY              (optional; defaults to the `origin` remote)
    - GITHUB_BASE_URL            (optional)
    - LOG_LEVEL                  (optional)
    - LOG_FORMAT                 (optional; json | text)
    - PM_STATE_PATH              (optional)
    - PM_SLOW_CALL_THRESHOLD_MS  (optional)

    Notes:
        Tests can override the env file via `PMSettings(_env_file=path_to_env)`.
    """

    github_token: str = Field(
        default="",
        validation_alias="ORCHESTRATOR_GITHUB_TOKEN",
        description="GitHub token used for API authentication",
    )
    repository: str = Field(
        default="",
        validation_alias="PM_REPOSITORY",
        description="Repository in the form 'owner/repo'",
    )
    github_base_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_BASE_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        validation_alias="LOG_FORMAT",
        description="stderr log format: one JSON object per line, or plain text",
    )

    state_path: Path = Field(
        default=Path(".pm"),
        validation_alias="PM_STATE_PATH",
        description="Directory where local PM state is persisted",
    )

    slow_call_threshold_ms: int = Field(
        default=DEFAULT_SLOW_CALL_THRESHOLD_MS,
        gt=0,
        validation_alias="PM_SLOW_CALL_THRESHOLD_MS",
        description="Operations slower than this are logged at WARNING",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def issues_state_file(self) -> Path:
        """Path where the local issue mirror and workflow state are persisted."""

        return self.state_path / "issues.json"

    def resolved_repository(self) -> str:
        return self.repository.strip() or detect_repository_from_git() or ""

    def require_github(self) -> tuple[str, str]:
        """Return ``(token, repository)`` or raise if either is missing."""

        if not self.github_token.strip():
            raise ValueError("ORCHESTRATOR_GITHUB_TOKEN is required for this command")
        repository = self.resolved_repository()
        if not repository:
            raise ValueError(
                "Cannot determine repository: set PM_REPOSITORY or add a GitHub 'origin' remote"
            )
        return self.github_token, repository
