"""Tests for the built-in inspection, autofix, push impact and build goals."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from src.sdm.goals.common import (
    AutoCodeInspection,
    Autofix,
    AutofixRegistration,
    Build,
    Builder,
    BuildResult,
    PushImpact,
    ReviewComment,
    ReviewerRegistration,
    ReviewListenerRegistration,
    ReviewListenerResponse,
    ReviewSeverity,
)
from src.sdm.push.predicates import push_test


def run_async(coro):
    return asyncio.run(coro)


@push_test("Never")
async def Never(inv):
    return False


def comment(detail, severity=ReviewSeverity.INFO, path=None, line=None):
    return ReviewComment("style", severity, detail, path=path, line=line)


def reviewer(name, *comments, test=None):
    async def inspection(project, invocation):
        return list(comments)

    return ReviewerRegistration(name, inspection, test)


class TestReviewComment:
    @pytest.mark.parametrize(
        "path,line,expected",
        [
            (None, None, "[warn] style: Avoid it"),
            ("pom.xml", None, "[warn] style: Avoid it (pom.xml)"),
            ("App.java", 12, "[warn] style: Avoid it (App.java:12)"),
        ],
    )
    def test_describe(self, path, line, expected):
        assert comment("Avoid it", ReviewSeverity.WARN, path, line).describe() == expected


class TestAutoCodeInspection:
    def test_collects_comments_from_matching_reviewers(self, goal_invocation):
        reviews = []

        async def listener(review, invocation):
            reviews.append(review)
            return ReviewListenerResponse.PROCEED

        goal = (
            AutoCodeInspection()
            .with_reviewer(reviewer("a", comment("one"), comment("two")))
            .with_reviewer(reviewer("b", comment("three")))
            .with_reviewer(reviewer("skipped", comment("never"), test=Never))
            .with_listener(ReviewListenerRegistration("recorder", listener))
        )

        result = run_async(goal.execute(goal_invocation))

        assert result.success
        assert result.message == "3 review comment(s)"
        assert [c.detail for c in reviews[0].comments] == ["one", "two", "three"]
        assert reviews[0].repo == goal_invocation.project.id

    def test_listener_can_fail_the_goal(self, goal_invocation):
        async def strict(review, invocation):
            return ReviewListenerResponse.FAIL_GOALS if review.comments else None

        goal = (
            AutoCodeInspection()
            .with_reviewer(reviewer("a", comment("bad", ReviewSeverity.ERROR)))
            .with_listener(ReviewListenerRegistration("strict", strict))
        )

        result = run_async(goal.execute(goal_invocation))

        assert result.code == 1
        assert result.message == "1 review comment(s); goals failed by strict"

    def test_no_reviewers(self, goal_invocation):
        result = run_async(AutoCodeInspection().execute(goal_invocation))
        assert result.success
        assert result.message == "0 review comment(s)"


class TestAutofix:
    def test_no_changes_means_no_commit(self, goal_invocation):
        transform = AsyncMock()
        goal = Autofix().with_autofix(AutofixRegistration("noop", transform))

        with patch("src.sdm.goals.common.git.working_tree_status", AsyncMock(return_value="")), \
                patch("src.sdm.goals.common.git.commit_all", AsyncMock()) as commit, \
                patch("src.sdm.goals.common.git.push_branch", AsyncMock()) as push:
            result = run_async(goal.execute(goal_invocation))

        transform.assert_awaited_once_with(goal_invocation.project, goal_invocation)
        commit.assert_not_awaited()
        push.assert_not_awaited()
        assert result.success
        assert not result.halts_downstream
        assert result.message == "No autofixes applied"

    def test_changes_are_committed_and_pushed(self, goal_invocation, settings):
        goal = (
            Autofix()
            .with_autofix(AutofixRegistration("first", AsyncMock()))
            .with_autofix(AutofixRegistration("unchanged", AsyncMock()))
            .with_autofix(AutofixRegistration("third", AsyncMock()))
        )
        statuses = ["", " M App.java", " M App.java", " M App.java\n M pom.xml"]

        with patch(
            "src.sdm.goals.common.git.working_tree_status", AsyncMock(side_effect=statuses)
        ), patch("src.sdm.goals.common.git.commit_all", AsyncMock()) as commit, patch(
            "src.sdm.goals.common.git.push_branch", AsyncMock()
        ) as push:
            result = run_async(goal.execute(goal_invocation))

        base_dir = goal_invocation.project.base_dir
        commit.assert_awaited_once_with(
            base_dir,
            "Autofix: first, third",
            settings.git_author_name,
            settings.git_author_email,
        )
        push.assert_awaited_once_with(base_dir, "main")
        assert result.success
        assert result.halts_downstream
        assert result.message == "Applied autofixes: first, third"

    def test_push_test_gates_transform(self, goal_invocation):
        transform = AsyncMock()
        goal = Autofix().with_autofix(AutofixRegistration("gated", transform, Never))

        with patch("src.sdm.goals.common.git.working_tree_status", AsyncMock(return_value="")):
            run_async(goal.execute(goal_invocation))

        transform.assert_not_awaited()


class TestPushImpact:
    def test_notifies_goal_and_machine_listeners(self, goal_invocation):
        calls = []

        async def own(invocation):
            calls.append("own")

        async def machine_level(invocation):
            calls.append("machine")

        goal_invocation.push_impact_listeners.append(machine_level)
        result = run_async(PushImpact().with_listener(own).execute(goal_invocation))

        assert calls == ["own", "machine"]
        assert result.message == "Notified 2 push impact listener(s)"


class FixedBuilder(Builder):
    def __init__(self, result):
        self.result = result
        self.calls = 0

    async def build(self, project, invocation):
        self.calls += 1
        return self.result


class TestBuild:
    def test_first_matching_builder_runs(self, goal_invocation):
        skipped = FixedBuilder(BuildResult(success=True, exit_code=0))
        maven = FixedBuilder(BuildResult(success=True, exit_code=0, duration_seconds=12.34))
        gradle = FixedBuilder(BuildResult(success=True, exit_code=0))
        goal = (
            Build()
            .with_builder("Never", skipped, Never)
            .with_builder("Maven", maven)
            .with_builder("Gradle", gradle)
        )

        result = run_async(goal.execute(goal_invocation))

        assert result.success
        assert result.message == "Maven build succeeded in 12.3s"
        assert (skipped.calls, maven.calls, gradle.calls) == (0, 1, 0)

    def test_failed_build(self, goal_invocation):
        goal = Build().with_builder(
            "Maven", FixedBuilder(BuildResult(success=False, exit_code=2, log="BUILD FAILURE"))
        )
        result = run_async(goal.execute(goal_invocation))
        assert result.code == 2
        assert result.message == "Maven build failed with exit code 2"

    def test_build_that_never_finished(self, goal_invocation):
        goal = Build().with_builder("Maven", FixedBuilder(BuildResult(success=False, exit_code=0)))
        assert run_async(goal.execute(goal_invocation)).code == 1

    def test_no_builder(self, goal_invocation):
        result = run_async(Build().execute(goal_invocation))
        assert result.code == 1
        assert result.message == "No builder registered for this push"
