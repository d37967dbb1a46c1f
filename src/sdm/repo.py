"""Repository references.

A RepoRef locates a repository (and optionally a branch and commit) on a
GitHub instance. Refs are immutable and used both for pushed repositories
and for generator seed repositories.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RepoRef(BaseModel):
    """Reference to a repository on GitHub.

    Attributes:
        owner: The repository owner (user or organization).
        repo: The repository name without owner prefix.
        branch: Branch name.
        sha: Commit SHA, when the ref points at a specific commit.
        web_url: Base URL of the GitHub web host.
    """

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    branch: str = Field(default="master", min_length=1)
    sha: Optional[str] = None
    web_url: str = "https://github.com"

    @property
    def slug(self) -> str:
        """Repository path in format "{owner}/{repo}"."""
        return f"{self.owner}/{self.repo}"

    @property
    def url(self) -> str:
        return f"{self.web_url.rstrip('/')}/{self.slug}"

    @property
    def clone_url(self) -> str:
        return f"{self.url}.git"

    def authenticated_clone_url(self, token: Optional[str]) -> str:
        """Clone URL carrying a token for HTTPS authentication.

        Args:
            token: GitHub token. Without one the plain clone URL is returned.
        """
        if not token:
            return self.clone_url
        scheme, _, rest = self.clone_url.partition("://")
        return f"{scheme}://x-access-token:{token}@{rest}"


GitHubRepoRef = RepoRef
