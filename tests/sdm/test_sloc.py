"""Tests for source lines of code metrics."""

import asyncio

import pytest
from hypothesis import given, strategies as st

from conftest import write_files
from src.sdm.events.models import EventType
from src.sdm.sloc import (
    LANGUAGES,
    LanguageStats,
    code_metrics,
    compute_code_metrics,
    count_lines,
    language_for,
    report_code_metrics,
)

JAVA = language_for("App.java")
PYTHON = language_for("tool.py")
XML = language_for("pom.xml")

JAVA_SOURCE = """package com.example;

/*
 * Licensed under the Apache License.
 */
public class App { /* inline */
    // comment
    int x = 1; // trailing
    /* a */ int y = 2;
    /** start
       end */
}
"""


def run_async(coro):
    return asyncio.run(coro)


class TestLanguages:
    @pytest.mark.parametrize(
        "path,name",
        [("App.java", "Java"), ("build.gradle.kts", "Kotlin"), ("config.yaml", "YAML"), ("pom.xml", "XML")],
    )
    def test_language_for(self, path, name):
        assert language_for(path).name == name

    def test_unknown_language(self):
        assert language_for("README.md") is None

    def test_extensions_are_unique(self):
        extensions = [e for language in LANGUAGES for e in language.extensions]
        assert len(extensions) == len(set(extensions))


class TestCountLines:
    def test_java_comments(self):
        assert count_lines(JAVA_SOURCE, JAVA) == (12, 5)

    def test_hash_comments(self):
        assert count_lines("#!/bin/sh\n\nimport os  # why\n# done\n", PYTHON) == (4, 1)

    def test_xml_comments(self):
        content = "<project>\n  <!-- coordinates\n  -->\n  <groupId>x</groupId> <!-- id -->\n</project>\n"
        assert count_lines(content, XML) == (5, 3)

    def test_block_marker_inside_line_comment(self):
        content = "int x = 1; // see /* here\nint y = 2;\nint z = 3;\n"
        assert count_lines(content, JAVA) == (3, 3)

    def test_line_marker_inside_block_comment(self):
        assert count_lines("int x = 1; /* not // code\n*/ int y = 2;\n", JAVA) == (2, 2)

    def test_empty(self):
        assert count_lines("", JAVA) == (0, 0)

    @given(lines=st.lists(st.text(alphabet="abc xyz=;{}", max_size=20), max_size=30))
    def test_code_never_exceeds_total(self, lines):
        total, code = count_lines("\n".join(lines), JAVA)
        assert 0 <= code <= total

    @given(lines=st.lists(st.text(alphabet="abc xyz=;{}", min_size=1, max_size=20), max_size=30))
    def test_commenting_every_line_leaves_no_code(self, lines):
        _, code = count_lines("\n".join("// " + line for line in lines), JAVA)
        assert code == 0


class TestComputeCodeMetrics:
    def test_per_language_totals(self, project):
        write_files(
            project.base_dir,
            {
                "pom.xml": "<project>\n</project>\n",
                "src/main/java/App.java": "class App {\n}\n",
                "src/main/java/Util.java": "// util\nclass Util {}\n",
                "README.md": "# readme\n",
            },
        )
        (project.base_dir / "src/main/java/Binary.java").write_bytes(b"\xff\xfe\x00")

        stats = run_async(compute_code_metrics(project))

        assert stats == [
            LanguageStats(language="Java", files=2, total_lines=4, code_lines=3),
            LanguageStats(language="XML", files=1, total_lines=2, code_lines=2),
        ]

    def test_report_emits_event(self, project, goal_invocation, event_emitter, push):
        write_files(project.base_dir, {"src/main/java/App.java": "class App {\n}\n"})

        run_async(report_code_metrics(goal_invocation))

        [event] = event_emitter.of_type(EventType.CODE_METRICS)
        assert event.push_id == push.push_id
        assert event.details == {
            "languages": [{"language": "Java", "files": 1, "total_lines": 2, "code_lines": 2}],
            "total_code_lines": 2,
        }

    def test_pack_registers_push_impact_listener(self):
        registered = []

        class Machine:
            def add_push_impact_listener(self, listener):
                registered.append(listener)

        pack = code_metrics()
        pack.configure(Machine())

        assert pack.name == "sloc"
        assert registered == [report_code_metrics]
