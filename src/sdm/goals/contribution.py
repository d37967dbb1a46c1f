"""Goal contribution rules.

A rule binds one or more push tests to a goal set. A GoalContributor
evaluates every rule for a push, independently of the others, and returns
all goal sets whose rules matched.

Example:
    >>> contributor = goal_contributors(
    ...     on_any_push().set_goals(checks),
    ...     when_push_satisfies(IsMaven).set_goals(build),
    ... )
"""

import logging
from typing import List, Optional, Sequence

from src.sdm.goals.models import GoalSet
from src.sdm.invocation import PushListenerInvocation
from src.sdm.push.predicates import AnyPush, PushTest

logger = logging.getLogger(__name__)


class GoalContributionRule:
    """Push tests that must all match for a goal set to be scheduled.

    Attributes:
        push_tests: Tests evaluated for each push.
        goal_set: Goal set scheduled when every test matches.
    """

    def __init__(self, push_tests: Sequence[PushTest]):
        if not push_tests:
            raise ValueError("a contribution rule requires at least one push test")
        self.push_tests = list(push_tests)
        self.goal_set: Optional[GoalSet] = None

    @property
    def name(self) -> str:
        return " and ".join(test.name for test in self.push_tests)

    def set_goals(self, goal_set: GoalSet) -> "GoalContributionRule":
        self.goal_set = goal_set
        return self

    async def matches(self, invocation: PushListenerInvocation) -> bool:
        """Whether every push test matches.

        Raises:
            PushTestError: If a push test cannot be evaluated.
        """
        for test in self.push_tests:
            if not await test.test(invocation):
                return False
        return True

    def __repr__(self) -> str:
        label = self.goal_set.label if self.goal_set else None
        return f"GoalContributionRule({self.name!r} -> {label!r})"


def on_any_push() -> GoalContributionRule:
    """Rule matching every push."""
    return GoalContributionRule([AnyPush])


def when_push_satisfies(*push_tests: PushTest) -> GoalContributionRule:
    """Rule matching pushes that satisfy all of the given push tests."""
    return GoalContributionRule(push_tests)


class GoalContributor:
    """Evaluates contribution rules for a push."""

    def __init__(self, rules: Sequence[GoalContributionRule]):
        for rule in rules:
            if rule.goal_set is None:
                raise ValueError(f"Contribution rule {rule.name} has no goal set")
        self.rules = list(rules)

    async def contributed_goal_sets(
        self, invocation: PushListenerInvocation
    ) -> List[GoalSet]:
        """Goal sets of every matching rule, in rule order.

        Every rule is evaluated; a match does not stop evaluation of the
        rules after it.
        """
        matched: List[GoalSet] = []
        for rule in self.rules:
            if await rule.matches(invocation):
                matched.append(rule.goal_set)
                logger.info(
                    "Goal contribution rule matched",
                    extra={
                        "rule": rule.name,
                        "goal_set": rule.goal_set.label,
                        "push_id": invocation.push.push_id,
                    },
                )
        return matched


def goal_contributors(*rules: GoalContributionRule) -> GoalContributor:
    return GoalContributor(rules)
