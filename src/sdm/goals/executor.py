"""Goal execution.

Runs the goals of a GoalPlan one at a time, in plan order. A goal starts
only when all of its preconditions succeeded; otherwise it is skipped.
Goal exceptions are converted into failures so one broken goal never
takes down push handling.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from src.sdm.events.emitter import EventEmitter, NullEventEmitter
from src.sdm.events.models import DeliveryEvent, EventType
from src.sdm.goals.models import (
    ExecuteGoalResult,
    Goal,
    GoalInvocation,
    GoalOutcome,
    GoalStatus,
)
from src.sdm.goals.planner import GoalPlan
from src.sdm.push.models import PushEvent

logger = logging.getLogger(__name__)

InvocationFactory = Callable[[Goal], GoalInvocation]


@dataclass
class GoalSetResult:
    """Outcome of executing a plan for one push.

    Attributes:
        push: The push the plan was executed for.
        plan: The executed plan.
        outcomes: One outcome per planned goal, in plan order.
        execution_order: Unique names of goals in the order they started.
    """

    push: PushEvent
    plan: GoalPlan
    outcomes: List[GoalOutcome] = field(default_factory=list)
    execution_order: List[str] = field(default_factory=list)

    def outcome_for(self, goal: Goal) -> GoalOutcome:
        for outcome in self.outcomes:
            if outcome.goal is goal:
                return outcome
        raise KeyError(goal.unique_name)

    def status_of(self, unique_name: str) -> GoalStatus:
        for outcome in self.outcomes:
            if outcome.goal.unique_name == unique_name:
                return outcome.status
        raise KeyError(unique_name)

    @property
    def succeeded(self) -> bool:
        """True when no goal failed. Skipped goals do not count as failures."""
        return all(o.status != GoalStatus.FAILURE for o in self.outcomes)


class GoalsSetListener:
    """Hooks called around the execution of a push's goals.

    Override either method; the defaults do nothing.
    """

    async def on_goals_planned(self, push: PushEvent, plan: GoalPlan) -> None:
        pass

    async def on_goals_completed(self, push: PushEvent, result: GoalSetResult) -> None:
        pass


class GoalExecutor:
    """Executes goal plans sequentially.

    Attributes:
        event_emitter: Sink for goal lifecycle events.
    """

    def __init__(self, event_emitter: Optional[EventEmitter] = None):
        self.event_emitter = event_emitter or NullEventEmitter()

    async def execute(
        self,
        push: PushEvent,
        plan: GoalPlan,
        invocation_factory: InvocationFactory,
    ) -> GoalSetResult:
        """Run every goal of the plan.

        Args:
            push: The push being handled.
            plan: Goals in execution order.
            invocation_factory: Builds the invocation for each goal.

        Returns:
            GoalSetResult with one outcome per goal.
        """
        result = GoalSetResult(
            push=push,
            plan=plan,
            outcomes=[GoalOutcome(goal=goal) for goal in plan.goals],
        )
        halted: set = set()

        for entry in plan.entries:
            outcome = result.outcome_for(entry.goal)

            blocking = [
                precondition
                for precondition in entry.preconditions
                if result.outcome_for(precondition).status != GoalStatus.SUCCESS
                or id(precondition) in halted
            ]
            if blocking:
                outcome.status = GoalStatus.SKIPPED
                outcome.message = "Waiting on " + ", ".join(
                    p.display_name for p in blocking
                ) + ", which did not complete successfully"
                await self._emit(push, EventType.GOAL_SKIPPED, entry.goal, summary=outcome.message)
                continue

            outcome.status = GoalStatus.IN_PROCESS
            result.execution_order.append(entry.goal.unique_name)
            await self._emit(push, EventType.GOAL_STARTED, entry.goal)

            started = time.monotonic()
            goal_result = await self._run_goal(entry.goal, invocation_factory)
            outcome.duration_seconds = time.monotonic() - started
            outcome.message = goal_result.message
            outcome.target_url = goal_result.target_url

            if goal_result.success:
                outcome.status = GoalStatus.SUCCESS
                if goal_result.halts_downstream:
                    halted.add(id(entry.goal))
                event_type = EventType.GOAL_SUCCEEDED
            else:
                outcome.status = GoalStatus.FAILURE
                event_type = EventType.GOAL_FAILED

            await self._emit(
                push,
                event_type,
                entry.goal,
                summary=outcome.message,
                duration_seconds=outcome.duration_seconds,
                target_url=outcome.target_url,
            )

        logger.info(
            "Goal execution finished",
            extra={
                "push_id": push.push_id,
                "succeeded": result.succeeded,
                "statuses": {o.goal.unique_name: o.status.value for o in result.outcomes},
            },
        )
        return result

    async def _run_goal(
        self, goal: Goal, invocation_factory: InvocationFactory
    ) -> ExecuteGoalResult:
        try:
            return await goal.execute(invocation_factory(goal))
        except Exception as exc:
            logger.exception("Goal raised an exception", extra={"goal": goal.unique_name})
            return ExecuteGoalResult(code=1, message=f"{type(exc).__name__}: {exc}")

    async def _emit(self, push: PushEvent, event_type: EventType, goal: Goal, **details) -> None:
        """Emit a goal event, swallowing emitter failures."""
        event = DeliveryEvent(
            event_type=event_type,
            push_id=push.push_id,
            repository=push.full_repository,
            details={
                "goal": goal.unique_name,
                **{k: v for k, v in details.items() if v is not None},
            },
        )
        try:
            await self.event_emitter.emit(event)
        except Exception:
            logger.exception(
                "Failed to emit goal event",
                extra={"event_type": event_type.value, "goal": goal.unique_name},
            )
