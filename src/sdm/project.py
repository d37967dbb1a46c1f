"""Directory-backed projects.

A LocalProject wraps a checkout on disk. Push tests, goals and code
transforms read and edit files through it rather than touching paths
directly, so every path stays inside the checkout.
"""

import logging
import shutil
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterator, Optional

from src.sdm.repo import RepoRef

logger = logging.getLogger(__name__)

IGNORED_DIRECTORIES = frozenset({".git"})

# Edits a project in place. The second argument is the invocation the
# transform runs under: a command invocation for generators, a goal
# invocation for autofixes.
CodeTransform = Callable[["LocalProject", Any], Awaitable[None]]


class ProjectPathError(ValueError):
    """Raised when a project path escapes the project root."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path is outside the project: {path}")


class ProjectFile:
    """A file within a LocalProject.

    Attributes:
        path: Path relative to the project root, using forward slashes.
    """

    def __init__(self, root: Path, path: str):
        self._root = root
        self.path = path

    @property
    def name(self) -> str:
        return Path(self.path).name

    @property
    def absolute_path(self) -> Path:
        return self._root / self.path

    async def get_content(self) -> str:
        return self.absolute_path.read_text(encoding="utf-8")

    async def set_content(self, content: str) -> None:
        self.absolute_path.write_text(content, encoding="utf-8")

    async def replace_all(self, old: str, new: str) -> int:
        """Replace every literal occurrence of old with new.

        Returns:
            Number of occurrences replaced. The file is only rewritten
            when at least one occurrence was found.
        """
        content = await self.get_content()
        count = content.count(old)
        if count:
            await self.set_content(content.replace(old, new))
        return count

    def __repr__(self) -> str:
        return f"ProjectFile({self.path!r})"


class LocalProject:
    """A project checked out into a local directory.

    Attributes:
        base_dir: Root directory of the checkout.
        id: Reference of the repository the checkout came from.
    """

    def __init__(self, base_dir: Path, id: RepoRef):
        self.base_dir = Path(base_dir)
        self.id = id

    def _resolve(self, path: str) -> Path:
        root = self.base_dir.resolve()
        target = (root / path).resolve()
        if target != root and root not in target.parents:
            raise ProjectPathError(path)
        return target

    async def get_file(self, path: str) -> Optional[ProjectFile]:
        """Return the file at path, or None when it does not exist."""
        target = self._resolve(path)
        if not target.is_file():
            return None
        return ProjectFile(self.base_dir, path)

    async def has_file(self, path: str) -> bool:
        return self._resolve(path).is_file()

    async def add_file(self, path: str, content: str) -> ProjectFile:
        """Create or overwrite a file, creating parent directories."""
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return ProjectFile(self.base_dir, path)

    async def delete_file(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.is_file():
            return False
        target.unlink()
        return True

    async def move_file(self, old_path: str, new_path: str) -> ProjectFile:
        """Move a file, creating the destination's parent directories.

        Raises:
            FileNotFoundError: If old_path does not exist.
        """
        source = self._resolve(old_path)
        if not source.is_file():
            raise FileNotFoundError(old_path)
        target = self._resolve(new_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(target))
        logger.debug(
            "Moved project file",
            extra={"from": old_path, "to": new_path, "project": self.id.slug},
        )
        return ProjectFile(self.base_dir, new_path)

    def iter_files(self, pattern: str = "**/*") -> Iterator[ProjectFile]:
        """Iterate over files matching a glob, skipping git metadata.

        Files are yielded in sorted path order.
        """
        matches = sorted(self.base_dir.glob(pattern))
        for match in matches:
            if not match.is_file():
                continue
            relative = match.relative_to(self.base_dir)
            if IGNORED_DIRECTORIES.intersection(relative.parts):
                continue
            yield ProjectFile(self.base_dir, relative.as_posix())

    def __repr__(self) -> str:
        return f"LocalProject({self.id.slug!r}, {str(self.base_dir)!r})"
