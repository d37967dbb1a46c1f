"""Local per-branch deployment of Spring Boot applications.

Each pushed branch gets its own copy of the project and its own
`spring-boot:run` process. Deploying a branch again stops the previous
process for that branch first. Ports are allocated from the configured base
port upwards.
"""

import asyncio
import logging
import re
import shutil
import socket
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from src.sdm.commands import CommandRegistration
from src.sdm.config import DeliverySettings
from src.sdm.goals.models import ExecuteGoalResult, Goal, GoalInvocation
from src.sdm.invocation import CommandInvocation
from src.sdm.project import LocalProject
from src.sdm.push.models import PushEvent
from src.sdm.spring.maven import maven_executable

logger = logging.getLogger(__name__)

STARTED_PATTERN = re.compile(r"Started \S+ in [\d.]+ seconds")
STOP_TIMEOUT_SECONDS = 10
MAX_PORT = 65535


class DeploymentError(Exception):
    """Raised when a branch cannot be deployed.

    Attributes:
        branch_key: "{owner}/{repo}:{branch}" of the failed deployment.
        output: Tail of the application output, when available.
    """

    def __init__(self, branch_key: str, message: str, output: str = ""):
        self.branch_key = branch_key
        self.output = output
        super().__init__(f"Deployment of {branch_key} failed: {message}")


@dataclass
class BranchDeployment:
    """A running branch deployment.

    Attributes:
        owner: Repository owner.
        repo: Repository name.
        branch: Deployed branch.
        sha: Deployed commit.
        port: Port the application listens on.
        url: Base URL of the application.
        directory: Directory the application runs from.
        started_at: When the application reported itself started.
    """

    owner: str
    repo: str
    branch: str
    sha: str
    port: int
    url: str
    directory: Path
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    process: Optional[asyncio.subprocess.Process] = field(default=None, repr=False)
    output_task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def key(self) -> str:
        return branch_key(self.owner, self.repo, self.branch)

    def describe(self) -> str:
        return f"{self.key} at {self.url} ({self.sha[:7]})"


def branch_key(owner: str, repo: str, branch: str) -> str:
    return f"{owner}/{repo}:{branch}"


def _directory_name(branch: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", branch)


class PerBranchDeployer:
    """Starts and tracks one Spring Boot process per branch.

    Attributes:
        base_path: Directory holding per-branch copies of projects.
        host: Host name used in deployment URLs.
        base_port: Lowest port handed out.
        startup_timeout_seconds: How long to wait for the startup line.
        maven_command: Maven executable when the project has no wrapper.
    """

    def __init__(self, configuration: DeliverySettings):
        self.base_path = Path(configuration.deploy_base_path)
        self.host = configuration.deploy_host
        self.base_port = configuration.deploy_base_port
        self.startup_timeout_seconds = configuration.deploy_startup_timeout_seconds
        self.maven_command = configuration.maven_command
        self._deployments: Dict[str, BranchDeployment] = {}
        self._lock = asyncio.Lock()

    def list_deployments(self) -> List[BranchDeployment]:
        return sorted(self._deployments.values(), key=lambda d: d.key)

    def port_available(self, port: int) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind(("", port))
            except OSError:
                return False
        return True

    def next_free_port(self) -> int:
        """Lowest port at or above the base port not used by a deployment or another process."""
        in_use = {d.port for d in self._deployments.values()}
        for port in range(self.base_port, MAX_PORT + 1):
            if port not in in_use and self.port_available(port):
                return port
        raise DeploymentError("*", f"No free port at or above {self.base_port}")

    async def deploy(self, project: LocalProject, push: PushEvent) -> BranchDeployment:
        """Deploy the pushed commit of a branch, replacing any previous deployment.

        Raises:
            DeploymentError: If the application does not start in time.
        """
        key = branch_key(push.owner, push.repository, push.branch)
        async with self._lock:
            await self._stop(key)

            directory = self.base_path / push.owner / push.repository / _directory_name(push.branch)
            shutil.rmtree(directory, ignore_errors=True)
            directory.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(project.base_dir, directory, ignore=shutil.ignore_patterns(".git"))

            port = self.next_free_port()
            executable = maven_executable(directory, self.maven_command)
            logger.info(
                "Starting branch deployment",
                extra={"deployment": key, "port": port, "directory": str(directory)},
            )
            try:
                process = await asyncio.create_subprocess_exec(
                    executable,
                    "spring-boot:run",
                    "--batch-mode",
                    f"-Dspring-boot.run.arguments=--server.port={port}",
                    cwd=str(directory),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                )
            except OSError as exc:
                raise DeploymentError(key, f"Failed to start {executable}: {exc}") from exc

            output: List[str] = []
            try:
                await asyncio.wait_for(
                    self._wait_for_startup(key, process, output),
                    timeout=self.startup_timeout_seconds,
                )
            except asyncio.TimeoutError as exc:
                await self._terminate(process)
                raise DeploymentError(
                    key,
                    f"Application did not start within {self.startup_timeout_seconds}s",
                    output="".join(output[-50:]),
                ) from exc

            deployment = BranchDeployment(
                owner=push.owner,
                repo=push.repository,
                branch=push.branch,
                sha=push.sha,
                port=port,
                url=f"http://{self.host}:{port}",
                directory=directory,
                process=process,
            )
            deployment.output_task = asyncio.create_task(self._drain_output(key, process))
            self._deployments[key] = deployment

        logger.info("Branch deployment started", extra={"deployment": key, "url": deployment.url})
        return deployment

    async def _wait_for_startup(
        self,
        key: str,
        process: asyncio.subprocess.Process,
        output: List[str],
    ) -> None:
        while True:
            raw = await process.stdout.readline()
            if not raw:
                returncode = await process.wait()
                raise DeploymentError(
                    key,
                    f"Application exited with code {returncode} before starting",
                    output="".join(output[-50:]),
                )
            line = raw.decode(errors="replace")
            output.append(line)
            if STARTED_PATTERN.search(line):
                return

    async def _drain_output(self, key: str, process: asyncio.subprocess.Process) -> None:
        while True:
            raw = await process.stdout.readline()
            if not raw:
                break
            logger.debug(
                "Deployment output",
                extra={"deployment": key, "line": raw.decode(errors="replace").rstrip()},
            )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=STOP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()

    async def _stop(self, key: str) -> None:
        deployment = self._deployments.pop(key, None)
        if deployment is None:
            return
        if deployment.process is not None:
            await self._terminate(deployment.process)
        if deployment.output_task is not None:
            deployment.output_task.cancel()
        logger.info("Stopped branch deployment", extra={"deployment": key})

    async def stop_all(self) -> None:
        async with self._lock:
            for key in list(self._deployments):
                await self._stop(key)


_deployer: Optional[PerBranchDeployer] = None


def get_deployer(configuration: DeliverySettings) -> PerBranchDeployer:
    """Process-wide deployer, created from the first configuration it sees."""
    global _deployer
    if _deployer is None:
        _deployer = PerBranchDeployer(configuration)
    return _deployer


async def stop_deployer() -> None:
    """Stop every branch deployment and discard the process-wide deployer."""
    global _deployer
    if _deployer is not None:
        await _deployer.stop_all()
    _deployer = None


class MavenPerBranchDeployment(Goal):
    """Deploys the pushed branch locally with spring-boot:run."""

    def __init__(
        self,
        unique_name: str = "maven-per-branch-deploy",
        display_name: str = "deploy locally",
        deployer: Optional[PerBranchDeployer] = None,
    ):
        super().__init__(unique_name, display_name, "Deploy branch locally")
        self._deployer = deployer

    async def execute(self, invocation: GoalInvocation) -> ExecuteGoalResult:
        deployer = self._deployer or get_deployer(invocation.configuration)
        try:
            deployment = await deployer.deploy(invocation.project, invocation.push)
        except DeploymentError as exc:
            logger.error(
                "Branch deployment failed",
                extra={"deployment": exc.branch_key, "output_tail": exc.output[-2000:]},
            )
            return ExecuteGoalResult(code=1, message=str(exc))

        return ExecuteGoalResult(
            message=f"Deployed {deployment.branch} to {deployment.url}",
            target_url=deployment.url,
        )


NO_DEPLOYMENTS_MESSAGE = "No branch deployments running"


async def list_branch_deploys(invocation: CommandInvocation) -> None:
    deployments = get_deployer(invocation.configuration).list_deployments()
    if not deployments:
        await invocation.address_channels(NO_DEPLOYMENTS_MESSAGE)
        return
    lines = [f"{len(deployments)} branch deployment(s) running:"]
    lines.extend(f"- {deployment.describe()}" for deployment in deployments)
    await invocation.address_channels("\n".join(lines))


ListBranchDeploys = CommandRegistration(
    name="ListBranchDeploys",
    intent="list branch deploys",
    description="List branches deployed locally",
    listener=list_branch_deploys,
)
