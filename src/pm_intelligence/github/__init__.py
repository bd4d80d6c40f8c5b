"""GitHub integration."""

from pm_intelligence.github.client import GitHubClient, GitHubIssue

__all__ = ["GitHubClient", "GitHubIssue"]
