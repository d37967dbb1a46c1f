"""Push and channel-link event models.

PushEvent carries the essential data extracted from a GitHub push webhook.
ChannelLinkEvent announces that a repository has been linked to a chat
channel. Both use Pydantic for validation, consistent with config.py.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from src.sdm.repo import RepoRef


class PushEvent(BaseModel):
    """Parsed GitHub push webhook event.

    Attributes:
        owner: The repository owner (user or organization).
        repository: The repository name without owner prefix.
        branch: The branch the commits were pushed to.
        sha: The commit SHA after the push.
        before: The commit SHA before the push, None for new branches.
        pusher: Name of the user who pushed.
        commit_messages: Messages of the pushed commits, oldest first.
        web_url: Base URL of the GitHub web host.
    """

    owner: str = Field(..., min_length=1)
    repository: str = Field(..., min_length=1)
    branch: str = Field(..., min_length=1)
    sha: str = Field(..., min_length=7, description="Commit SHA after the push")
    before: Optional[str] = None
    pusher: str = ""
    commit_messages: List[str] = Field(default_factory=list)
    web_url: str = "https://github.com"

    @property
    def push_id(self) -> str:
        """Canonical push identifier "{owner}/{repository}@{sha}"."""
        return f"{self.owner}/{self.repository}@{self.sha}"

    @property
    def full_repository(self) -> str:
        return f"{self.owner}/{self.repository}"

    @property
    def repo_ref(self) -> RepoRef:
        return RepoRef(
            owner=self.owner,
            repo=self.repository,
            branch=self.branch,
            sha=self.sha,
            web_url=self.web_url,
        )


class ChannelLinkEvent(BaseModel):
    """A repository was linked to a chat channel.

    Attributes:
        owner: The repository owner.
        repository: The repository name.
        channel: Name of the linked channel.
    """

    owner: str = Field(..., min_length=1)
    repository: str = Field(..., min_length=1)
    channel: str = Field(..., min_length=1)

    @property
    def full_repository(self) -> str:
        return f"{self.owner}/{self.repository}"
