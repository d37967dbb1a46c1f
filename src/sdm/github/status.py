"""Summarize goal progress as a GitHub commit status."""

import logging
from typing import TYPE_CHECKING, Callable

from src.sdm.github.client import GitHubAPIError, GitHubClient
from src.sdm.goals.executor import GoalSetResult, GoalsSetListener
from src.sdm.goals.models import GoalStatus
from src.sdm.goals.planner import GoalPlan
from src.sdm.push.models import PushEvent

if TYPE_CHECKING:
    from src.sdm.machine import SoftwareDeliveryMachine

logger = logging.getLogger(__name__)


def describe_result(result: GoalSetResult) -> str:
    """One-line description of a finished goal set."""
    failed = [o.goal.display_name for o in result.outcomes if o.status == GoalStatus.FAILURE]
    if failed:
        return "Failed: " + ", ".join(failed)

    succeeded = sum(1 for o in result.outcomes if o.status == GoalStatus.SUCCESS)
    skipped = sum(1 for o in result.outcomes if o.status == GoalStatus.SKIPPED)
    description = f"{succeeded} of {len(result.outcomes)} goals succeeded"
    if skipped:
        description += f", {skipped} skipped"
    return description


class GitHubStatusListener(GoalsSetListener):
    """Posts a pending status when goals are planned and a final one when they finish.

    Status updates are best effort. API failures are logged and never
    interrupt goal execution.

    Attributes:
        context: Commit status context, e.g. "sdm/zeus".
    """

    def __init__(self, client_provider: Callable[[], GitHubClient], context: str):
        self._client_provider = client_provider
        self.context = context

    async def on_goals_planned(self, push: PushEvent, plan: GoalPlan) -> None:
        if plan.is_empty:
            return
        await self._post(push, "pending", f"Planned {len(plan.goals)} goals")

    async def on_goals_completed(self, push: PushEvent, result: GoalSetResult) -> None:
        if result.plan.is_empty:
            return
        state = "success" if result.succeeded else "failure"
        await self._post(push, state, describe_result(result))

    async def _post(self, push: PushEvent, state: str, description: str) -> None:
        try:
            await self._client_provider().create_commit_status(
                owner=push.owner,
                repo=push.repository,
                sha=push.sha,
                state=state,
                context=self.context,
                description=description,
            )
        except GitHubAPIError as exc:
            logger.warning(
                "Failed to update commit status",
                extra={
                    "push_id": push.push_id,
                    "state": state,
                    "status_code": exc.status_code,
                    "error": exc.message,
                },
            )


def summarize_goals_in_github_status(sdm: "SoftwareDeliveryMachine") -> GitHubStatusListener:
    """Register a listener reporting the machine's goals as one commit status."""
    listener = GitHubStatusListener(lambda: sdm.github_client, context=f"sdm/{sdm.slug}")
    sdm.add_goals_set_listener(listener)
    return listener
