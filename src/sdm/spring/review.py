"""Spring reviewers and autofixes.

Spring style:
- @RequestMapping on a handler method without an HTTP method
- wildcard imports

Cloud native:
- use of java.io.File (local disk is not durable in the cloud)
- server.port hard-coded in application configuration

Autofix:
- remove an argument-less @ComponentScan from the @SpringBootApplication
  class, which already scans its own package
"""

import logging
import re
from typing import List

import yaml

from src.sdm.goals.common import (
    AutofixRegistration,
    ReviewComment,
    ReviewerRegistration,
    ReviewSeverity,
)
from src.sdm.invocation import PushListenerInvocation
from src.sdm.project import LocalProject, ProjectFile
from src.sdm.spring.predicates import JVM_SOURCE_SUFFIXES, find_spring_boot_application_class

logger = logging.getLogger(__name__)

SPRING_STYLE = "spring-style"
CLOUD_NATIVE = "cloud-native"

REQUEST_MAPPING_PATTERN = re.compile(r"@RequestMapping\b(.*)")
WILDCARD_IMPORT_PATTERN = re.compile(r"^\s*import\s+(static\s+)?[\w.]+\.\*\s*;?\s*$")
FILE_USAGE_PATTERN = re.compile(r"\bjava\.io\.File\b")
SERVER_PORT_PROPERTY_PATTERN = re.compile(r"^\s*server\.port\s*[=:]")
COMPONENT_SCAN_PATTERN = re.compile(r"^[ \t]*@ComponentScan(\(\s*\))?[ \t]*\r?\n", re.MULTILINE)
COMPONENT_SCAN_IMPORT_PATTERN = re.compile(
    r"^[ \t]*import\s+org\.springframework\.context\.annotation\.ComponentScan\s*;?[ \t]*\r?\n",
    re.MULTILINE,
)

CONFIGURATION_FILES = (
    "src/main/resources/application.properties",
    "src/main/resources/application.yml",
    "src/main/resources/application.yaml",
)


def _source_files(project: LocalProject) -> List[ProjectFile]:
    return [f for f in project.iter_files() if f.path.endswith(JVM_SOURCE_SUFFIXES)]


def _next_declaration(lines: List[str], index: int) -> str:
    """First line after index that is not blank or another annotation."""
    for line in lines[index + 1:]:
        stripped = line.strip()
        if stripped and not stripped.startswith("@"):
            return stripped
    return ""


async def non_specific_mvc_annotations(
    project: LocalProject, invocation: PushListenerInvocation
) -> List[ReviewComment]:
    comments = []
    for file in _source_files(project):
        lines = (await file.get_content()).splitlines()
        for index, line in enumerate(lines):
            match = REQUEST_MAPPING_PATTERN.search(line)
            if not match or "method" in match.group(1):
                continue
            if re.search(r"\b(class|interface)\b", _next_declaration(lines, index)):
                continue
            comments.append(
                ReviewComment(
                    category=SPRING_STYLE,
                    severity=ReviewSeverity.INFO,
                    detail="Use @GetMapping, @PostMapping etc. instead of @RequestMapping without a method",
                    path=file.path,
                    line=index + 1,
                )
            )
    return comments


async def wildcard_imports(
    project: LocalProject, invocation: PushListenerInvocation
) -> List[ReviewComment]:
    comments = []
    for file in _source_files(project):
        for index, line in enumerate((await file.get_content()).splitlines()):
            if WILDCARD_IMPORT_PATTERN.match(line):
                comments.append(
                    ReviewComment(
                        category=SPRING_STYLE,
                        severity=ReviewSeverity.INFO,
                        detail=f"Avoid wildcard imports: {line.strip()}",
                        path=file.path,
                        line=index + 1,
                    )
                )
    return comments


async def file_io_usage(
    project: LocalProject, invocation: PushListenerInvocation
) -> List[ReviewComment]:
    comments = []
    for file in _source_files(project):
        if not file.path.startswith("src/main/"):
            continue
        for index, line in enumerate((await file.get_content()).splitlines()):
            if FILE_USAGE_PATTERN.search(line):
                comments.append(
                    ReviewComment(
                        category=CLOUD_NATIVE,
                        severity=ReviewSeverity.WARN,
                        detail="Local file system access with java.io.File is not cloud native",
                        path=file.path,
                        line=index + 1,
                    )
                )
    return comments


def _yaml_defines_server_port(content: str) -> bool:
    try:
        documents = list(yaml.safe_load_all(content))
    except yaml.YAMLError as exc:
        logger.warning("Cannot parse application YAML", extra={"error": str(exc)})
        return False
    for document in documents:
        if isinstance(document, dict):
            server = document.get("server")
            if isinstance(server, dict) and "port" in server:
                return True
    return False


async def hard_coded_server_port(
    project: LocalProject, invocation: PushListenerInvocation
) -> List[ReviewComment]:
    comments = []
    for path in CONFIGURATION_FILES:
        file = await project.get_file(path)
        if file is None:
            continue
        content = await file.get_content()
        if path.endswith(".properties"):
            found = any(SERVER_PORT_PROPERTY_PATTERN.match(line) for line in content.splitlines())
        else:
            found = _yaml_defines_server_port(content)
        if found:
            comments.append(
                ReviewComment(
                    category=CLOUD_NATIVE,
                    severity=ReviewSeverity.WARN,
                    detail="server.port is hard coded; let the platform assign the port",
                    path=path,
                )
            )
    return comments


async def remove_unnecessary_component_scan(
    project: LocalProject, invocation: PushListenerInvocation
) -> None:
    application_class = await find_spring_boot_application_class(project)
    if application_class is None:
        return
    content = await application_class.get_content()
    updated, removed = COMPONENT_SCAN_PATTERN.subn("", content)
    if not removed:
        return
    if "@ComponentScan" not in updated:
        updated = COMPONENT_SCAN_IMPORT_PATTERN.sub("", updated)
    await application_class.set_content(updated)


SPRING_STYLE_REVIEWERS = (
    ReviewerRegistration("NonSpecificMvcAnnotation", non_specific_mvc_annotations),
    ReviewerRegistration("WildcardImport", wildcard_imports),
)

CLOUD_NATIVE_REVIEWERS = (
    ReviewerRegistration("FileIoUsage", file_io_usage),
    ReviewerRegistration("HardCodedPort", hard_coded_server_port),
)

RemoveUnnecessaryComponentScan = AutofixRegistration(
    "Remove unnecessary component scan", remove_unnecessary_component_scan
)
