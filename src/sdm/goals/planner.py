"""Goal planning.

Turns the goal sets contributed for a push into a single GoalPlan: goals
merged by identity, preconditions restricted to goals that are actually
scheduled, and an execution order that respects every precondition.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from src.sdm.goals.models import Goal, GoalSet, PlannedGoal

logger = logging.getLogger(__name__)


class GoalDependencyCycleError(Exception):
    """Raised when goal preconditions form a cycle.

    Attributes:
        goal_names: Unique names of the goals that could not be ordered.
    """

    def __init__(self, goal_names: Sequence[str]):
        self.goal_names = list(goal_names)
        super().__init__(
            "Goal preconditions form a cycle between: " + ", ".join(self.goal_names)
        )


@dataclass
class GoalPlan:
    """Goals scheduled for one push, in execution order.

    Attributes:
        entries: Planned goals in an order that satisfies all preconditions.
        goal_set_labels: Labels of the goal sets the plan was built from.
    """

    entries: List[PlannedGoal] = field(default_factory=list)
    goal_set_labels: List[str] = field(default_factory=list)

    @property
    def goals(self) -> List[Goal]:
        return [entry.goal for entry in self.entries]

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def preconditions_of(self, goal: Goal) -> Tuple[Goal, ...]:
        for entry in self.entries:
            if entry.goal is goal:
                return entry.preconditions
        raise KeyError(goal.unique_name)

    def __contains__(self, goal: object) -> bool:
        return any(entry.goal is goal for entry in self.entries)


def plan_goals(goal_sets: Sequence[GoalSet]) -> GoalPlan:
    """Build the execution plan for a set of matched goal sets.

    Args:
        goal_sets: Goal sets in contribution order.

    Returns:
        GoalPlan with goals in stable topological order.

    Raises:
        GoalDependencyCycleError: If the preconditions cannot be ordered.
    """
    order: List[Goal] = []
    preconditions: Dict[int, List[Goal]] = {}

    for goal_set in goal_sets:
        for planned in goal_set.planned_goals():
            key = id(planned.goal)
            if key not in preconditions:
                order.append(planned.goal)
                preconditions[key] = []
            for precondition in planned.preconditions:
                if all(p is not precondition for p in preconditions[key]):
                    preconditions[key].append(precondition)

    scheduled = {id(goal) for goal in order}
    for goal in order:
        kept = []
        for precondition in preconditions[id(goal)]:
            if id(precondition) in scheduled:
                kept.append(precondition)
            else:
                logger.warning(
                    "Dropping precondition that is not scheduled for this push",
                    extra={
                        "goal": goal.unique_name,
                        "precondition": precondition.unique_name,
                    },
                )
        preconditions[id(goal)] = kept

    entries = [
        PlannedGoal(goal=goal, preconditions=tuple(preconditions[id(goal)]))
        for goal in _topological_order(order, preconditions)
    ]

    return GoalPlan(
        entries=entries,
        goal_set_labels=_unique_labels(goal_sets),
    )


def _topological_order(
    order: List[Goal],
    preconditions: Dict[int, List[Goal]],
) -> List[Goal]:
    """Order goals so each follows its preconditions.

    Among goals that are ready, the one planned earliest goes first.
    """
    remaining = list(order)
    done: set = set()
    result: List[Goal] = []

    while remaining:
        ready = next(
            (
                goal
                for goal in remaining
                if all(id(p) in done for p in preconditions[id(goal)])
            ),
            None,
        )
        if ready is None:
            raise GoalDependencyCycleError([goal.unique_name for goal in remaining])
        remaining.remove(ready)
        done.add(id(ready))
        result.append(ready)

    return result


def _unique_labels(goal_sets: Sequence[GoalSet]) -> List[str]:
    labels: List[str] = []
    for goal_set in goal_sets:
        if goal_set.label not in labels:
            labels.append(goal_set.label)
    return labels
