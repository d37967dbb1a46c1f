"""Spring Boot project generation.

Parameters for creating a Spring Boot service from a seed, and the code
transforms that turn the seed into the requested project:

- replace_readme_title: new README heading and description
- set_team_in_application_yml: record the owning team in application.yml
- transform_seed_to_custom_project: Maven coordinates, root package and
  application class name
"""

import logging
import os
import re
from typing import Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

import yaml
from pydantic import Field, field_validator, model_validator

from src.sdm.generators.models import GeneratorParameters
from src.sdm.invocation import CommandInvocation
from src.sdm.project import LocalProject
from src.sdm.spring.predicates import JVM_SOURCE_SUFFIXES, find_spring_boot_application_class

logger = logging.getLogger(__name__)

JAVA_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
JAVA_PACKAGE_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*(\.[a-z_][a-z0-9_]*)*$")
MAVEN_COORDINATE_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
PACKAGE_DECLARATION_PATTERN = re.compile(r"^\s*package\s+([\w.]+)\s*;?", re.MULTILINE)

APPLICATION_YML = "src/main/resources/application.yml"
APPLICATION_CLASS_SUFFIX = "Application"
SOURCE_ROOTS = ("src/main/java", "src/test/java", "src/main/kotlin", "src/test/kotlin")

# Sections of a POM whose groupId/artifactId/version belong to something
# other than the project itself.
POM_NESTED_SECTIONS = (
    "parent",
    "dependencies",
    "dependencyManagement",
    "build",
    "profiles",
    "reporting",
    "repositories",
    "pluginRepositories",
    "distributionManagement",
)


def to_class_stem(artifact_id: str) -> str:
    """PascalCase stem for class names, e.g. "acme-service" -> "AcmeService"."""
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", artifact_id) if p]
    stem = "".join(p[:1].upper() + p[1:] for p in parts)
    if not stem or not stem[0].isalpha():
        stem = "App" + stem
    return stem


class SpringProjectCreationParameters(GeneratorParameters):
    """Parameters for creating a Spring Boot service.

    Attributes:
        group_id: Maven group id.
        artifact_id: Maven artifact id; defaults to the target repository name.
        version: Initial project version.
        root_package: Java package the sources are moved into.
        service_class_name: Stem of the application class name; defaults to
                            the artifact id in PascalCase.
        description: Project description for the POM and README.
    """

    group_id: str = Field(..., min_length=1)
    artifact_id: Optional[str] = None
    version: str = "0.1.0-SNAPSHOT"
    root_package: str = Field(..., min_length=1)
    service_class_name: Optional[str] = None
    description: str = ""

    @field_validator("group_id", "version")
    @classmethod
    def validate_maven_coordinate(cls, v: str) -> str:
        if not MAVEN_COORDINATE_PATTERN.match(v):
            raise ValueError(f"{v!r} is not a valid Maven coordinate")
        return v

    @field_validator("artifact_id")
    @classmethod
    def validate_artifact_id(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not MAVEN_COORDINATE_PATTERN.match(v):
            raise ValueError(f"{v!r} is not a valid Maven artifact id")
        return v

    @field_validator("root_package")
    @classmethod
    def validate_root_package(cls, v: str) -> str:
        if not JAVA_PACKAGE_PATTERN.match(v):
            raise ValueError(f"{v!r} is not a valid Java package name")
        return v

    @field_validator("service_class_name")
    @classmethod
    def validate_service_class_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not JAVA_IDENTIFIER_PATTERN.match(v):
            raise ValueError(f"{v!r} is not a valid Java class name")
        return v

    @model_validator(mode="after")
    def fill_defaults(self) -> "SpringProjectCreationParameters":
        if self.artifact_id is None:
            self.artifact_id = self.target.repo
        if self.service_class_name is None:
            self.service_class_name = to_class_stem(self.artifact_id)
        return self

    @property
    def project_description(self) -> str:
        return self.description or self.target.description


# -----------------------------------------------------------------------------
# README
# -----------------------------------------------------------------------------


async def replace_readme_title(project: LocalProject, invocation: CommandInvocation) -> None:
    """Replace everything above the first second-level heading of README.md."""
    readme = await project.get_file("README.md")
    if readme is None:
        return

    parameters: SpringProjectCreationParameters = invocation.parameters
    content = await readme.get_content()

    header = f"# {parameters.target.repo}\n"
    if parameters.project_description:
        header += f"\n{parameters.project_description}\n"

    section = re.search(r"^## ", content, re.MULTILINE)
    if section:
        header += "\n" + content[section.start():]
    await readme.set_content(header)


# -----------------------------------------------------------------------------
# application.yml
# -----------------------------------------------------------------------------


async def set_team_in_application_yml(project: LocalProject, invocation: CommandInvocation) -> None:
    """Set atomist.team in application.yml to the configured team id."""
    team = invocation.configuration.team_id
    if not team:
        logger.info("No team configured, leaving application.yml unchanged")
        return

    application_yml = await project.get_file(APPLICATION_YML)
    if application_yml is None:
        return

    data = yaml.safe_load(await application_yml.get_content()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{APPLICATION_YML} is not a YAML mapping")

    section = data.get("atomist")
    if not isinstance(section, dict):
        section = {}
    section["team"] = team
    data["atomist"] = section

    await application_yml.set_content(
        yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    )


# -----------------------------------------------------------------------------
# Seed to project
# -----------------------------------------------------------------------------


def _nested_spans(content: str) -> List[Tuple[int, int]]:
    spans = []
    for section in POM_NESTED_SECTIONS:
        pattern = rf"<{section}\b[^>]*>.*?</{section}>"
        spans.extend(m.span() for m in re.finditer(pattern, content, re.DOTALL))
    return spans


def set_project_element(pom: str, tag: str, value: str) -> str:
    """Set the text of a top-level project element, if the POM declares it."""
    spans = _nested_spans(pom)
    for match in re.finditer(rf"<{tag}>(.*?)</{tag}>", pom, re.DOTALL):
        if any(start <= match.start() < end for start, end in spans):
            continue
        return pom[: match.start(1)] + escape(value) + pom[match.end(1):]
    return pom


async def update_pom(project: LocalProject, parameters: SpringProjectCreationParameters) -> None:
    pom = await project.get_file("pom.xml")
    if pom is None:
        return

    coordinates: Dict[str, str] = {
        "groupId": parameters.group_id,
        "artifactId": parameters.artifact_id,
        "version": parameters.version,
        "name": parameters.artifact_id,
    }
    if parameters.project_description:
        coordinates["description"] = parameters.project_description

    content = await pom.get_content()
    for tag, value in coordinates.items():
        content = set_project_element(content, tag, value)
    await pom.set_content(content)


def _source_files(project: LocalProject):
    return [f for f in project.iter_files() if f.path.endswith(JVM_SOURCE_SUFFIXES)]


def _prune_empty_directories(path, stop_at) -> None:
    """Remove empty directories under path, then path and its empty parents up to stop_at."""
    if path.is_dir():
        for directory, _, _ in os.walk(path, topdown=False):
            if not os.listdir(directory):
                os.rmdir(directory)
    while path != stop_at and not path.exists():
        path = path.parent
    while path != stop_at and path.is_dir() and not any(path.iterdir()):
        os.rmdir(path)
        path = path.parent


async def relocate_package(project: LocalProject, old_package: str, new_package: str) -> None:
    """Move sources from old_package to new_package and rewrite references."""
    reference = re.compile(rf"(?<![\w.]){re.escape(old_package)}(?!\w)")
    for file in _source_files(project):
        content = await file.get_content()
        updated = reference.sub(new_package, content)
        if updated != content:
            await file.set_content(updated)

    old_path = old_package.replace(".", "/")
    new_path = new_package.replace(".", "/")
    for root in SOURCE_ROOTS:
        prefix = f"{root}/{old_path}/"
        to_move = [f.path for f in project.iter_files(f"{root}/{old_path}/**/*")]
        for path in to_move:
            await project.move_file(path, f"{root}/{new_path}/{path[len(prefix):]}")
        if to_move:
            _prune_empty_directories(project.base_dir / root / old_path, project.base_dir / root)

    logger.info(
        "Relocated package",
        extra={"from_package": old_package, "to_package": new_package},
    )


async def rename_class_stem(project: LocalProject, old_stem: str, new_stem: str) -> None:
    """Rename classes starting with old_stem, e.g. SpringRestApplication."""
    identifier = re.compile(rf"\b{re.escape(old_stem)}(\w*)")
    for file in _source_files(project):
        content = await file.get_content()
        updated = identifier.sub(lambda m: new_stem + m.group(1), content)
        if updated != content:
            await file.set_content(updated)

    for file in _source_files(project):
        if file.name.startswith(old_stem):
            directory = file.path[: -len(file.name)]
            await project.move_file(file.path, directory + new_stem + file.name[len(old_stem):])


async def transform_seed_to_custom_project(
    project: LocalProject, invocation: CommandInvocation
) -> None:
    """Apply the requested Maven coordinates, package and class names to the seed."""
    parameters: SpringProjectCreationParameters = invocation.parameters
    await update_pom(project, parameters)

    application_class = await find_spring_boot_application_class(project)
    if application_class is None:
        logger.warning(
            "Seed has no @SpringBootApplication class, only the POM was updated",
            extra={"seed": project.id.slug},
        )
        return

    declaration = PACKAGE_DECLARATION_PATTERN.search(await application_class.get_content())
    if declaration and declaration.group(1) != parameters.root_package:
        await relocate_package(project, declaration.group(1), parameters.root_package)
        application_class = await find_spring_boot_application_class(project)

    class_name = application_class.name.rsplit(".", 1)[0]
    seed_stem = class_name
    if class_name.endswith(APPLICATION_CLASS_SUFFIX):
        seed_stem = class_name[: -len(APPLICATION_CLASS_SUFFIX)]
    if seed_stem and seed_stem != parameters.service_class_name:
        await rename_class_stem(project, seed_stem, parameters.service_class_name)


SPRING_GENERATOR_TRANSFORMS = (
    replace_readme_title,
    set_team_in_application_yml,
    transform_seed_to_custom_project,
)
