"""Push tests for Maven and Spring Boot projects."""

import re
from typing import Optional

from src.sdm.invocation import PushListenerInvocation
from src.sdm.project import LocalProject, ProjectFile
from src.sdm.push.predicates import push_test

SPRING_BOOT_GROUP_PATTERN = re.compile(r"<groupId>\s*org\.springframework\.boot\s*</groupId>")
SPRING_BOOT_APPLICATION_PATTERN = re.compile(r"@SpringBootApplication\b")
JVM_SOURCE_SUFFIXES = (".java", ".kt")


async def find_spring_boot_application_class(project: LocalProject) -> Optional[ProjectFile]:
    """First Java or Kotlin source under src/main annotated @SpringBootApplication."""
    for file in project.iter_files("src/main/**/*"):
        if not file.path.endswith(JVM_SOURCE_SUFFIXES):
            continue
        if SPRING_BOOT_APPLICATION_PATTERN.search(await file.get_content()):
            return file
    return None


@push_test("IsMaven")
async def IsMaven(invocation: PushListenerInvocation) -> bool:
    return await invocation.project.has_file("pom.xml")


@push_test("HasSpringBootPom")
async def HasSpringBootPom(invocation: PushListenerInvocation) -> bool:
    pom = await invocation.project.get_file("pom.xml")
    if pom is None:
        return False
    return SPRING_BOOT_GROUP_PATTERN.search(await pom.get_content()) is not None


@push_test("HasSpringBootApplicationClass")
async def HasSpringBootApplicationClass(invocation: PushListenerInvocation) -> bool:
    return await find_spring_boot_application_class(invocation.project) is not None
