"""Project generators."""

from src.sdm.generators.models import (
    GeneratorParameters,
    GeneratorRegistration,
    TargetRepoParameters,
)
from src.sdm.generators.runner import GeneratorRunner

__all__ = [
    "GeneratorParameters",
    "GeneratorRegistration",
    "GeneratorRunner",
    "TargetRepoParameters",
]
