"""Goals, goal sets, planning and execution."""

from src.sdm.goals.common import (
    AutoCodeInspection,
    Autofix,
    AutofixRegistration,
    Build,
    Builder,
    BuildResult,
    ProjectReview,
    PushImpact,
    PushImpactListener,
    ReviewComment,
    ReviewerRegistration,
    ReviewListenerRegistration,
    ReviewListenerResponse,
    ReviewSeverity,
)
from src.sdm.goals.contribution import (
    GoalContributionRule,
    GoalContributor,
    goal_contributors,
    on_any_push,
    when_push_satisfies,
)
from src.sdm.goals.executor import GoalExecutor, GoalSetResult, GoalsSetListener
from src.sdm.goals.models import (
    ExecuteGoalResult,
    Goal,
    GoalInvocation,
    GoalOutcome,
    GoalSet,
    GoalStatus,
    PlannedGoal,
    goals,
)
from src.sdm.goals.planner import GoalDependencyCycleError, GoalPlan, plan_goals

__all__ = [
    "AutoCodeInspection",
    "Autofix",
    "AutofixRegistration",
    "Build",
    "Builder",
    "BuildResult",
    "ExecuteGoalResult",
    "Goal",
    "GoalContributionRule",
    "GoalContributor",
    "GoalDependencyCycleError",
    "GoalExecutor",
    "GoalInvocation",
    "GoalOutcome",
    "GoalPlan",
    "GoalSet",
    "GoalSetResult",
    "GoalsSetListener",
    "GoalStatus",
    "PlannedGoal",
    "ProjectReview",
    "PushImpact",
    "PushImpactListener",
    "ReviewComment",
    "ReviewerRegistration",
    "ReviewListenerRegistration",
    "ReviewListenerResponse",
    "ReviewSeverity",
    "goal_contributors",
    "goals",
    "on_any_push",
    "plan_goals",
    "when_push_satisfies",
]
