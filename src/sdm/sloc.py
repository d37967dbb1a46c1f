"""Source lines of code metrics.

The code_metrics() extension pack registers a push-impact listener that
counts files, lines and code lines per language for each push and emits
them as a CODE_METRICS delivery event.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple

from src.sdm.events.models import DeliveryEvent, EventType
from src.sdm.goals.models import GoalInvocation
from src.sdm.machine import ExtensionPack, SoftwareDeliveryMachine
from src.sdm.project import LocalProject

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Language:
    name: str
    extensions: Tuple[str, ...]
    line_comment: Optional[str] = None
    block_comment: Optional[Tuple[str, str]] = None


C_STYLE_BLOCK = ("/*", "*/")

LANGUAGES = (
    Language("Java", (".java",), "//", C_STYLE_BLOCK),
    Language("Kotlin", (".kt", ".kts"), "//", C_STYLE_BLOCK),
    Language("Scala", (".scala",), "//", C_STYLE_BLOCK),
    Language("JavaScript", (".js", ".jsx"), "//", C_STYLE_BLOCK),
    Language("TypeScript", (".ts", ".tsx"), "//", C_STYLE_BLOCK),
    Language("Python", (".py",), "#"),
    Language("Shell", (".sh",), "#"),
    Language("YAML", (".yml", ".yaml"), "#"),
    Language("XML", (".xml",), None, ("<!--", "-->")),
)


@dataclass
class LanguageStats:
    """Line counts for one language.

    Attributes:
        language: Language name.
        files: Number of files.
        total_lines: All lines, including blank lines and comments.
        code_lines: Lines that are neither blank nor comment-only.
    """

    language: str
    files: int = 0
    total_lines: int = 0
    code_lines: int = 0


def language_for(path: str) -> Optional[Language]:
    for language in LANGUAGES:
        if path.endswith(language.extensions):
            return language
    return None


def count_lines(content: str, language: Language) -> Tuple[int, int]:
    """Count total and code lines.

    A line is code when something other than whitespace and comments
    remains on it. Comment markers inside string literals are not
    recognized.
    """
    lines = content.splitlines()
    code = 0
    in_block = False

    for line in lines:
        remaining = line.strip()
        has_code = False
        while remaining:
            if in_block:
                end = remaining.find(language.block_comment[1])
                if end < 0:
                    remaining = ""
                else:
                    remaining = remaining[end + len(language.block_comment[1]):].strip()
                    in_block = False
                continue
            if language.line_comment and remaining.startswith(language.line_comment):
                break
            if language.block_comment and remaining.startswith(language.block_comment[0]):
                remaining = remaining[len(language.block_comment[0]):]
                in_block = True
                continue
            has_code = True
            start = remaining.find(language.block_comment[0]) if language.block_comment else -1
            line_start = remaining.find(language.line_comment) if language.line_comment else -1
            if start < 0 or 0 <= line_start < start:
                break
            remaining = remaining[start:]
        if has_code:
            code += 1

    return len(lines), code


async def compute_code_metrics(project: LocalProject) -> List[LanguageStats]:
    """Per-language statistics, sorted by language name."""
    stats: Dict[str, LanguageStats] = {}
    for file in project.iter_files():
        language = language_for(file.path)
        if language is None:
            continue
        try:
            content = await file.get_content()
        except UnicodeDecodeError:
            logger.debug("Skipping file that is not UTF-8", extra={"path": file.path})
            continue
        total, code = count_lines(content, language)
        entry = stats.setdefault(language.name, LanguageStats(language=language.name))
        entry.files += 1
        entry.total_lines += total
        entry.code_lines += code
    return [stats[name] for name in sorted(stats)]


async def report_code_metrics(invocation: GoalInvocation) -> None:
    stats = await compute_code_metrics(invocation.project)
    push = invocation.push
    await invocation.event_emitter.emit(
        DeliveryEvent(
            event_type=EventType.CODE_METRICS,
            push_id=push.push_id,
            repository=push.full_repository,
            details={
                "languages": [asdict(s) for s in stats],
                "total_code_lines": sum(s.code_lines for s in stats),
            },
        )
    )


def code_metrics() -> ExtensionPack:
    """Extension pack reporting source lines of code on every push impact."""

    def configure(sdm: SoftwareDeliveryMachine) -> None:
        sdm.add_push_impact_listener(report_code_metrics)

    return ExtensionPack(
        name="sloc",
        configure=configure,
        description="Source lines of code per language",
    )
