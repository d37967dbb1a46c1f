"""Maven builds.

Runs Maven as an async subprocess with the configured timeout, capturing
combined output for the build log. The project's Maven wrapper is used
when it has one.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence, Tuple

from src.sdm.goals.common import Builder, BuildResult
from src.sdm.goals.models import GoalInvocation
from src.sdm.project import LocalProject

if TYPE_CHECKING:
    from src.sdm.machine import SoftwareDeliveryMachine

logger = logging.getLogger(__name__)

MAVEN_WRAPPER = "mvnw"


def maven_executable(project_dir: Path, maven_command: str) -> str:
    """The Maven wrapper when the project ships one, else the configured command."""
    if (project_dir / MAVEN_WRAPPER).is_file():
        return f"./{MAVEN_WRAPPER}"
    return maven_command


async def run_maven(
    project_dir: Path,
    executable: str,
    goals: Sequence[str],
    timeout_seconds: float,
) -> Tuple[int, str]:
    """Run Maven to completion.

    Returns:
        Exit code (-1 on timeout or when Maven cannot start) and combined
        output.
    """
    args: List[str] = [executable, *goals, "--batch-mode"]
    logger.info(
        "Running Maven",
        extra={"project_dir": str(project_dir), "command": " ".join(args), "timeout": timeout_seconds},
    )

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(project_dir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as exc:
        logger.error("Failed to start Maven", extra={"command": executable, "error": str(exc)})
        return -1, f"Failed to start {executable}: {exc}"

    try:
        output, _ = await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        logger.error("Maven timed out", extra={"project_dir": str(project_dir), "timeout": timeout_seconds})
        return -1, f"Maven timed out after {timeout_seconds}s"

    return process.returncode, output.decode(errors="replace")


class MavenBuilder(Builder):
    """Builds Maven projects with `package`."""

    def __init__(self, sdm: "SoftwareDeliveryMachine"):
        self.configuration = sdm.configuration

    async def build(self, project: LocalProject, invocation: GoalInvocation) -> BuildResult:
        started = time.monotonic()
        executable = maven_executable(project.base_dir, self.configuration.maven_command)
        exit_code, log = await run_maven(
            project.base_dir,
            executable,
            ["package"],
            self.configuration.build_timeout_seconds,
        )
        return BuildResult(
            success=exit_code == 0,
            exit_code=exit_code,
            log=log,
            duration_seconds=time.monotonic() - started,
        )
