"""Built-in goal types.

- AutoCodeInspection: run reviewers and hand the review to listeners
- Autofix: apply code transforms and push any resulting commit
- PushImpact: notify listeners that a push happened
- Build: run a registered builder against the checkout

Extension packs attach registrations to these goals; the goals themselves
hold no domain knowledge.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from src.sdm import git
from src.sdm.goals.models import ExecuteGoalResult, Goal, GoalInvocation
from src.sdm.invocation import PushListenerInvocation
from src.sdm.project import CodeTransform, LocalProject
from src.sdm.push.predicates import PushTest
from src.sdm.repo import RepoRef

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Code inspection
# -----------------------------------------------------------------------------


class ReviewSeverity(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True)
class ReviewComment:
    """A single finding of a reviewer.

    Attributes:
        category: Reviewer category, e.g. "spring-style" or "cloud-native".
        severity: How serious the finding is.
        detail: Human-readable description.
        path: File the finding refers to, relative to the project root.
        line: 1-based line number within path.
    """

    category: str
    severity: ReviewSeverity
    detail: str
    path: Optional[str] = None
    line: Optional[int] = None

    def describe(self) -> str:
        location = ""
        if self.path:
            location = f" ({self.path}:{self.line})" if self.line else f" ({self.path})"
        return f"[{self.severity.value}] {self.category}: {self.detail}{location}"


@dataclass
class ProjectReview:
    repo: RepoRef
    comments: List[ReviewComment] = field(default_factory=list)


Inspection = Callable[[LocalProject, PushListenerInvocation], Awaitable[List[ReviewComment]]]


@dataclass(frozen=True)
class ReviewerRegistration:
    name: str
    inspection: Inspection
    push_test: Optional[PushTest] = None


class ReviewListenerResponse(str, Enum):
    """What a review listener asks the inspection goal to do.

    Attributes:
        PROCEED: Let the goal succeed.
        FAIL_GOALS: Fail the inspection goal, and so anything waiting on it.
    """

    PROCEED = "proceed"
    FAIL_GOALS = "fail_goals"


ReviewListener = Callable[
    [ProjectReview, PushListenerInvocation], Awaitable[Optional[ReviewListenerResponse]]
]


@dataclass(frozen=True)
class ReviewListenerRegistration:
    name: str
    listener: ReviewListener


async def _applies(push_test: Optional[PushTest], invocation: PushListenerInvocation) -> bool:
    return push_test is None or await push_test.test(invocation)


class AutoCodeInspection(Goal):
    """Runs all registered reviewers against the pushed commit."""

    def __init__(self, unique_name: str = "code-inspection", display_name: str = "code inspection"):
        super().__init__(unique_name, display_name, "Inspect code")
        self.reviewers: List[ReviewerRegistration] = []
        self.listeners: List[ReviewListenerRegistration] = []

    def with_reviewer(self, registration: ReviewerRegistration) -> "AutoCodeInspection":
        self.reviewers.append(registration)
        return self

    def with_listener(self, registration: ReviewListenerRegistration) -> "AutoCodeInspection":
        self.listeners.append(registration)
        return self

    async def execute(self, invocation: GoalInvocation) -> ExecuteGoalResult:
        review = ProjectReview(repo=invocation.project.id)
        for registration in self.reviewers:
            if not await _applies(registration.push_test, invocation):
                continue
            comments = await registration.inspection(invocation.project, invocation)
            review.comments.extend(comments)

        for comment in review.comments:
            logger.info(
                "Review comment: %s",
                comment.describe(),
                extra={"push_id": invocation.push.push_id, "category": comment.category},
            )

        failed_by = []
        for registration in self.listeners:
            response = await registration.listener(review, invocation)
            if response == ReviewListenerResponse.FAIL_GOALS:
                failed_by.append(registration.name)

        if failed_by:
            return ExecuteGoalResult(
                code=1,
                message=(
                    f"{len(review.comments)} review comment(s); "
                    f"goals failed by {', '.join(failed_by)}"
                ),
            )

        return ExecuteGoalResult(message=f"{len(review.comments)} review comment(s)")


# -----------------------------------------------------------------------------
# Autofix
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class AutofixRegistration:
    name: str
    transform: CodeTransform
    push_test: Optional[PushTest] = None


class Autofix(Goal):
    """Applies autofix transforms and pushes the result.

    When a transform changes the working tree, the changes are committed
    and pushed to the pushed branch. Goals waiting on autofix are then
    skipped; the autofix commit triggers a fresh push of its own.
    """

    def __init__(self, unique_name: str = "autofix", display_name: str = "autofix"):
        super().__init__(unique_name, display_name, "Apply autofixes")
        self.registrations: List[AutofixRegistration] = []

    def with_autofix(self, registration: AutofixRegistration) -> "Autofix":
        self.registrations.append(registration)
        return self

    async def execute(self, invocation: GoalInvocation) -> ExecuteGoalResult:
        project = invocation.project
        applied: List[str] = []

        status = await git.working_tree_status(project.base_dir)
        for registration in self.registrations:
            if not await _applies(registration.push_test, invocation):
                continue
            await registration.transform(project, invocation)
            new_status = await git.working_tree_status(project.base_dir)
            if new_status != status:
                applied.append(registration.name)
                status = new_status

        if not applied:
            return ExecuteGoalResult(message="No autofixes applied")

        configuration = invocation.configuration
        await git.commit_all(
            project.base_dir,
            f"Autofix: {', '.join(applied)}",
            configuration.git_author_name,
            configuration.git_author_email,
        )
        await git.push_branch(project.base_dir, invocation.push.branch)

        logger.info(
            "Pushed autofix commit",
            extra={"push_id": invocation.push.push_id, "autofixes": applied},
        )
        return ExecuteGoalResult(
            message=f"Applied autofixes: {', '.join(applied)}",
            halts_downstream=True,
        )


# -----------------------------------------------------------------------------
# Push impact
# -----------------------------------------------------------------------------


PushImpactListener = Callable[[GoalInvocation], Awaitable[None]]


class PushImpact(Goal):
    """Notifies push-impact listeners registered on the goal and the machine."""

    def __init__(self, unique_name: str = "push-impact", display_name: str = "push impact"):
        super().__init__(unique_name, display_name, "Analyze push impact")
        self.listeners: List[PushImpactListener] = []

    def with_listener(self, listener: PushImpactListener) -> "PushImpact":
        self.listeners.append(listener)
        return self

    async def execute(self, invocation: GoalInvocation) -> ExecuteGoalResult:
        listeners = [*self.listeners, *invocation.push_impact_listeners]
        for listener in listeners:
            await listener(invocation)
        return ExecuteGoalResult(message=f"Notified {len(listeners)} push impact listener(s)")


# -----------------------------------------------------------------------------
# Build
# -----------------------------------------------------------------------------


@dataclass
class BuildResult:
    """Outcome of a builder run.

    Attributes:
        success: Whether the build tool exited cleanly.
        exit_code: Process exit code, -1 when the process never finished.
        log: Combined build output.
        duration_seconds: Wall-clock build time.
    """

    success: bool
    exit_code: int
    log: str = ""
    duration_seconds: float = 0.0


class Builder(ABC):
    """Builds a project checkout."""

    @abstractmethod
    async def build(self, project: LocalProject, invocation: GoalInvocation) -> BuildResult:
        ...


@dataclass(frozen=True)
class BuilderRegistration:
    name: str
    builder: Builder
    push_test: Optional[PushTest] = None


BUILD_LOG_TAIL_CHARS = 2000


class Build(Goal):
    """Runs the first registered builder whose push test matches."""

    def __init__(self, unique_name: str = "build", display_name: str = "build"):
        super().__init__(unique_name, display_name, "Build")
        self.registrations: List[BuilderRegistration] = []

    def with_builder(
        self,
        name: str,
        builder: Builder,
        push_test: Optional[PushTest] = None,
    ) -> "Build":
        self.registrations.append(BuilderRegistration(name, builder, push_test))
        return self

    async def execute(self, invocation: GoalInvocation) -> ExecuteGoalResult:
        for registration in self.registrations:
            if await _applies(registration.push_test, invocation):
                break
        else:
            return ExecuteGoalResult(code=1, message="No builder registered for this push")

        result = await registration.builder.build(invocation.project, invocation)
        if result.success:
            return ExecuteGoalResult(
                message=f"{registration.name} build succeeded in {result.duration_seconds:.1f}s"
            )

        logger.warning(
            "Build failed",
            extra={
                "push_id": invocation.push.push_id,
                "builder": registration.name,
                "exit_code": result.exit_code,
                "log_tail": result.log[-BUILD_LOG_TAIL_CHARS:],
            },
        )
        return ExecuteGoalResult(
            code=result.exit_code or 1,
            message=f"{registration.name} build failed with exit code {result.exit_code}",
        )
