"""Run generator commands.

Generation happens in a temporary workspace:

1. Shallow-clone the seed branch and drop its history
2. Apply the generator's transforms in order
3. Create the target repository through the GitHub API
4. Push the transformed tree as the initial commit
5. Tell the invoking channel where the new repository lives

A transform that raises aborts generation before anything is created on
GitHub.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable

from src.sdm import git
from src.sdm.config import DeliverySettings
from src.sdm.generators.models import GeneratorParameters, GeneratorRegistration
from src.sdm.github.client import GitHubClient
from src.sdm.invocation import CommandInvocation
from src.sdm.project import LocalProject
from src.sdm.repo import RepoRef

logger = logging.getLogger(__name__)


class GeneratorRunner:
    """Creates repositories from seeds.

    Attributes:
        configuration: Machine configuration (token, workspace, git author).
    """

    def __init__(
        self,
        configuration: DeliverySettings,
        github_client_provider: Callable[[], GitHubClient],
    ):
        self.configuration = configuration
        self._github_client_provider = github_client_provider

    async def generate(
        self,
        registration: GeneratorRegistration,
        invocation: CommandInvocation,
    ) -> RepoRef:
        """Generate a new repository.

        Args:
            registration: The generator to run.
            invocation: Invocation carrying validated GeneratorParameters.

        Returns:
            Reference to the created repository.

        Raises:
            GitCommandError: If cloning the seed or pushing fails.
            GitHubAPIError: If the repository cannot be created.
        """
        parameters = invocation.parameters
        if not isinstance(parameters, GeneratorParameters):
            raise TypeError(f"Generator {registration.name} requires GeneratorParameters")

        seed = registration.starting_point
        target = parameters.target
        token = self.configuration.github_token

        logger.info(
            "Generating project",
            extra={
                "generator": registration.name,
                "seed": seed.slug,
                "seed_branch": seed.branch,
                "target": f"{target.owner}/{target.repo}",
            },
        )

        base_path = Path(self.configuration.workspace_base_path)
        base_path.mkdir(parents=True, exist_ok=True)
        workspace = Path(tempfile.mkdtemp(prefix="generate_", dir=base_path))
        try:
            project_dir = workspace / target.repo
            await git.clone_branch(seed, project_dir, token)
            git.remove_git_metadata(project_dir)

            project = LocalProject(project_dir, id=seed)
            for transform in registration.transforms:
                await transform(project, invocation)

            created = await self._github_client_provider().create_repository(
                owner=target.owner,
                name=target.repo,
                private=target.private,
                description=target.description or None,
            )

            target_ref = RepoRef(
                owner=target.owner,
                repo=target.repo,
                branch=seed.branch,
                web_url=self.configuration.github_web_url,
            )
            await git.init_and_push(
                project_dir,
                target_ref.authenticated_clone_url(token),
                target_ref.branch,
                f"Initial commit from {registration.name}",
                self.configuration.git_author_name,
                self.configuration.git_author_email,
            )
        finally:
            shutil.rmtree(workspace, ignore_errors=True)

        url = created.get("html_url") or target_ref.url
        logger.info(
            "Generated project",
            extra={"generator": registration.name, "repository": target_ref.slug, "url": url},
        )
        await invocation.address_channels(f"Created new project at {url}")
        return target_ref
