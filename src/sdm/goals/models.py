"""Goal models.

This module defines the building blocks of a delivery plan:
- Goal: a named unit of delivery work with an execution strategy
- GoalSet: an ordered, labelled collection of goals with preconditions
- PlannedGoal: a goal together with the goals it must wait for
- ExecuteGoalResult / GoalOutcome: what a goal run produced

Goals are compared by identity. The same Goal object planned in two goal
sets is one goal, which is how cross-set ordering ("build waits on the
autofix of the checks set") is expressed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional, Sequence, Tuple, Union

from src.sdm.events.emitter import EventEmitter, NullEventEmitter
from src.sdm.invocation import PushListenerInvocation

if TYPE_CHECKING:
    from src.sdm.goals.common import PushImpactListener


class GoalStatus(str, Enum):
    """Lifecycle states of a goal within one push.

    Attributes:
        PLANNED: Scheduled, not yet started.
        IN_PROCESS: Currently executing.
        SUCCESS: Finished with a zero result code.
        FAILURE: Finished with a non-zero code or raised an exception.
        SKIPPED: Not run because a precondition did not succeed or
                 an upstream goal halted the plan.
    """

    PLANNED = "planned"
    IN_PROCESS = "in_process"
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class ExecuteGoalResult:
    """Result returned by a goal's execute method.

    Attributes:
        code: Zero for success, anything else for failure.
        message: Human-readable description of what happened.
        target_url: Link to the goal's product (deployment, log, report).
        halts_downstream: When True, goals waiting on this one are skipped
                          even though this goal succeeded.
    """

    code: int = 0
    message: str = ""
    target_url: Optional[str] = None
    halts_downstream: bool = False

    @property
    def success(self) -> bool:
        return self.code == 0


@dataclass
class GoalInvocation(PushListenerInvocation):
    """Context for a single goal execution."""

    goal: Optional["Goal"] = None
    event_emitter: EventEmitter = field(default_factory=NullEventEmitter)
    push_impact_listeners: List["PushImpactListener"] = field(default_factory=list)


class Goal:
    """A named unit of delivery work.

    Subclasses implement execute(). Ordering is not a property of the goal
    itself; it comes from the goal sets it is planned in.

    Attributes:
        unique_name: Identifier of the goal within a machine.
        display_name: Name shown in statuses and messages.
        description: Short text describing what the goal does.
    """

    def __init__(
        self,
        unique_name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
    ):
        if not unique_name:
            raise ValueError("unique_name cannot be empty")
        self.unique_name = unique_name
        self.display_name = display_name or unique_name
        self.description = description or f"Run {self.display_name}"

    async def execute(self, invocation: GoalInvocation) -> ExecuteGoalResult:
        raise NotImplementedError(f"Goal {self.unique_name} has no execution strategy")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.unique_name!r})"


GoalDependency = Union[Goal, "GoalSet"]


@dataclass(frozen=True)
class PlannedGoal:
    """A goal and the goals that must succeed before it starts."""

    goal: Goal
    preconditions: Tuple[Goal, ...] = ()


class GoalSet:
    """An ordered, labelled collection of goals.

    Goals are added in batches with plan(); after() attaches preconditions
    to the most recent batch. A goal set used as a dependency stands for
    all of its goals, resolved when the plan is built.

    Example:
        >>> checks = goals("checks").plan(inspect).plan(autofix)
        >>> build = goals("build").plan(Build()).after(autofix)
        >>> deploy = goals("deploy").plan(Deploy()).after(build)
    """

    def __init__(self, label: str):
        if not label:
            raise ValueError("goal set label cannot be empty")
        self.label = label
        self._batches: List[Tuple[List[Goal], List[GoalDependency]]] = []

    def plan(self, *goals: Goal) -> "GoalSet":
        """Add a batch of goals, independent of each other."""
        if not goals:
            raise ValueError("plan() requires at least one goal")
        self._batches.append((list(goals), []))
        return self

    def after(self, *dependencies: GoalDependency) -> "GoalSet":
        """Make the most recently planned batch wait on dependencies."""
        if not self._batches:
            raise ValueError("after() must follow plan()")
        if not dependencies:
            raise ValueError("after() requires at least one goal or goal set")
        self._batches[-1][1].extend(dependencies)
        return self

    @property
    def goals(self) -> List[Goal]:
        """All goals in planning order, without duplicates."""
        return _unique([goal for batch, _ in self._batches for goal in batch])

    def planned_goals(self) -> List[PlannedGoal]:
        """Goals with their resolved preconditions, in planning order."""
        planned = []
        for batch, dependencies in self._batches:
            resolved = _resolve_dependencies(dependencies)
            for goal in batch:
                preconditions = tuple(g for g in resolved if g is not goal)
                planned.append(PlannedGoal(goal=goal, preconditions=preconditions))
        return planned

    def __repr__(self) -> str:
        names = ", ".join(goal.unique_name for goal in self.goals)
        return f"GoalSet({self.label!r}: {names})"


def goals(label: str) -> GoalSet:
    """Start a new goal set."""
    return GoalSet(label)


def _resolve_dependencies(dependencies: Sequence[GoalDependency]) -> List[Goal]:
    resolved: List[Goal] = []
    for dependency in dependencies:
        if isinstance(dependency, GoalSet):
            resolved.extend(dependency.goals)
        elif isinstance(dependency, Goal):
            resolved.append(dependency)
        else:
            raise TypeError(f"Cannot depend on {dependency!r}")
    return _unique(resolved)


def _unique(items: Sequence[Any]) -> List[Any]:
    seen = set()
    result = []
    for item in items:
        if id(item) not in seen:
            seen.add(id(item))
            result.append(item)
    return result


@dataclass
class GoalOutcome:
    """What happened to one goal during a push.

    Attributes:
        goal: The goal.
        status: Final status.
        message: Result, failure or skip message.
        target_url: Link to the goal's product, if any.
        duration_seconds: Execution time; None when the goal did not run.
    """

    goal: Goal
    status: GoalStatus = GoalStatus.PLANNED
    message: str = ""
    target_url: Optional[str] = None
    duration_seconds: Optional[float] = None
