"""Git operations for pushed commits, seeds and generated projects.

All commands run through asyncio subprocesses so they never block the
event loop. Credentials travel in the remote URL and are redacted from
anything that is logged or raised.
"""

import asyncio
import logging
import re
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Sequence

from src.sdm.project import LocalProject
from src.sdm.repo import RepoRef

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 300

_CREDENTIALS_PATTERN = re.compile(r"://[^/@\s]+@")


def redact_credentials(text: str) -> str:
    """Strip user info (tokens) from any URLs in text."""
    return _CREDENTIALS_PATTERN.sub("://***@", text)


class GitCommandError(Exception):
    """Raised when a git command fails or times out.

    Attributes:
        args_line: The redacted git command line.
        returncode: Process exit code, None on timeout or spawn failure.
        stderr: Redacted standard error output.
    """

    def __init__(
        self,
        git_args: Sequence[str],
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.args_line = redact_credentials(" ".join(["git", *git_args]))
        self.returncode = returncode
        self.stderr = redact_credentials(stderr)
        super().__init__(f"{self.args_line}: {redact_credentials(message)}")


async def run_git(
    cwd: Path,
    *git_args: str,
    timeout: float = GIT_TIMEOUT_SECONDS,
) -> str:
    """Run a git command and return its standard output.

    Raises:
        GitCommandError: If git exits non-zero, times out, or cannot start.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            *git_args,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise GitCommandError(git_args, f"Failed to execute git: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise GitCommandError(git_args, f"Timed out after {timeout}s") from exc

    if process.returncode != 0:
        error_output = stderr.decode(errors="replace").strip()
        raise GitCommandError(
            git_args,
            error_output or f"exited with code {process.returncode}",
            returncode=process.returncode,
            stderr=error_output,
        )

    return stdout.decode(errors="replace")


async def fetch_commit(ref: RepoRef, target: Path, token: Optional[str]) -> None:
    """Check out the commit a ref points at, on a local branch of the same name.

    Only the single commit is fetched. The local branch is created at the
    fetched commit so that follow-up commits can be pushed back.
    """
    if ref.sha is None:
        raise ValueError(f"RepoRef {ref.slug} has no sha to fetch")

    target.mkdir(parents=True, exist_ok=True)
    await run_git(target, "init", "--quiet")
    await run_git(target, "remote", "add", "origin", ref.authenticated_clone_url(token))
    await run_git(target, "fetch", "--quiet", "--depth", "1", "origin", ref.sha)
    await run_git(target, "checkout", "--quiet", "-B", ref.branch, "FETCH_HEAD")

    logger.info(
        "Checked out pushed commit",
        extra={"repository": ref.slug, "branch": ref.branch, "sha": ref.sha},
    )


async def clone_branch(ref: RepoRef, target: Path, token: Optional[str]) -> None:
    """Shallow-clone the tip of a ref's branch into target."""
    await run_git(
        target.parent,
        "clone",
        "--quiet",
        "--depth",
        "1",
        "--branch",
        ref.branch,
        ref.authenticated_clone_url(token),
        str(target),
    )

    logger.info(
        "Cloned repository",
        extra={"repository": ref.slug, "branch": ref.branch, "target": str(target)},
    )


async def working_tree_status(cwd: Path) -> str:
    """Porcelain status of the working tree, empty when it is clean."""
    return (await run_git(cwd, "status", "--porcelain")).strip()


async def commit_all(
    cwd: Path,
    message: str,
    author_name: str,
    author_email: str,
) -> None:
    """Stage every change and commit it with the given author."""
    await run_git(cwd, "add", "--all")
    await run_git(
        cwd,
        "-c",
        f"user.name={author_name}",
        "-c",
        f"user.email={author_email}",
        "commit",
        "--quiet",
        "--message",
        message,
    )


async def push_branch(cwd: Path, branch: str, remote: str = "origin") -> None:
    await run_git(cwd, "push", "--quiet", remote, f"HEAD:refs/heads/{branch}")


async def init_and_push(
    cwd: Path,
    remote_url: str,
    branch: str,
    message: str,
    author_name: str,
    author_email: str,
) -> None:
    """Turn a directory into a fresh repository and push it as branch."""
    await run_git(cwd, "init", "--quiet")
    await run_git(cwd, "checkout", "--quiet", "-B", branch)
    await commit_all(cwd, message, author_name, author_email)
    await run_git(cwd, "remote", "add", "origin", remote_url)
    await push_branch(cwd, branch)


def remove_git_metadata(cwd: Path) -> None:
    """Drop a checkout's history, leaving a plain directory tree."""
    shutil.rmtree(cwd / ".git", ignore_errors=True)


@asynccontextmanager
async def checkout_push(
    ref: RepoRef,
    base_path: Path,
    token: Optional[str],
) -> AsyncIterator[LocalProject]:
    """Check out a pushed commit into a temporary workspace.

    The workspace directory is removed when the context exits.

    Yields:
        LocalProject rooted at the checkout.
    """
    base_path.mkdir(parents=True, exist_ok=True)
    workspace = Path(tempfile.mkdtemp(prefix=f"{ref.owner}_{ref.repo}_", dir=base_path))
    try:
        await fetch_commit(ref, workspace, token)
        yield LocalProject(workspace, id=ref)
    finally:
        shutil.rmtree(workspace, ignore_errors=True)
