"""Generator models.

A generator creates a new repository from a seed: it copies the seed's
files, applies code transforms in order, and pushes the result as the
initial commit of the target repository.
"""

import re
from dataclasses import dataclass, field
from typing import Sequence, Type

from pydantic import BaseModel, Field, field_validator

from src.sdm.project import CodeTransform
from src.sdm.repo import RepoRef

GITHUB_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class TargetRepoParameters(BaseModel):
    """Where a generated project is created.

    Attributes:
        owner: User or organization that will own the new repository.
        repo: Name of the new repository.
        visibility: "public" or "private".
        description: Repository description.
    """

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1, max_length=100)
    visibility: str = "public"
    description: str = ""

    @field_validator("owner", "repo")
    @classmethod
    def validate_github_name(cls, v: str) -> str:
        if not GITHUB_NAME_PATTERN.match(v):
            raise ValueError(f"{v!r} is not a valid GitHub name")
        if v in (".", ".."):
            raise ValueError(f"{v!r} is not a valid GitHub name")
        return v

    @field_validator("visibility")
    @classmethod
    def validate_visibility(cls, v: str) -> str:
        v = v.lower()
        if v not in ("public", "private"):
            raise ValueError("visibility must be 'public' or 'private'")
        return v

    @property
    def private(self) -> bool:
        return self.visibility == "private"


class GeneratorParameters(BaseModel):
    """Base model for generator parameters; every generator needs a target."""

    target: TargetRepoParameters


@dataclass(frozen=True)
class GeneratorRegistration:
    """A generator command.

    Attributes:
        name: Command name.
        intent: Phrase users type to invoke the generator.
        description: What the generator creates.
        parameters: Parameter model, a GeneratorParameters subclass.
        starting_point: Seed repository to copy.
        transforms: Applied in order to the copied seed.
    """

    name: str
    intent: str
    description: str
    parameters: Type[GeneratorParameters]
    starting_point: RepoRef
    transforms: Sequence[CodeTransform] = field(default_factory=tuple)
