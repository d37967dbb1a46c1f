"""GitHub API access: commit statuses and repository creation."""

from src.sdm.github.client import GitHubAPIError, GitHubClient, RateLimitError
from src.sdm.github.status import (
    GitHubStatusListener,
    describe_result,
    summarize_goals_in_github_status,
)

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "GitHubStatusListener",
    "RateLimitError",
    "describe_result",
    "summarize_goals_in_github_status",
]
