"""Delivery event models for observability.

This module defines the data models for delivery events, including:
- EventType: Enum of all event types emitted by the machine
- DeliveryEvent: Structured event with push identity and details

Events are emitted as pushes are received, goals are planned and each
goal moves through its lifecycle.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events emitted by the delivery machine.

    Attributes:
        PUSH_RECEIVED: A push webhook was accepted for processing.
        GOALS_PLANNED: Goal contributions were evaluated for a push.
        GOAL_STARTED: A goal began executing.
        GOAL_SUCCEEDED: A goal finished successfully.
        GOAL_FAILED: A goal returned a non-zero code or raised.
        GOAL_SKIPPED: A goal did not run because a precondition did not succeed.
        CODE_METRICS: Source line counts were computed for a push.
        ERROR: Push handling failed outside of goal execution.
    """

    PUSH_RECEIVED = "push_received"
    GOALS_PLANNED = "goals_planned"
    GOAL_STARTED = "goal_started"
    GOAL_SUCCEEDED = "goal_succeeded"
    GOAL_FAILED = "goal_failed"
    GOAL_SKIPPED = "goal_skipped"
    CODE_METRICS = "code_metrics"
    ERROR = "error"


class DeliveryEvent(BaseModel):
    """Structured event emitted by the delivery machine.

    Attributes:
        event_type: The category of event.
        push_id: Push identifier in format "{owner}/{repo}@{sha}".
        repository: Full repository path in format "{owner}/{repo}".
        timestamp: When the event occurred (UTC timezone).
        details: Additional context specific to the event type.

    Details Field Conventions:
        For GOALS_PLANNED events:
            - goal_sets: Labels of the matched goal sets
            - goals: Unique names of the planned goals

        For GOAL_* events:
            - goal: Unique name of the goal
            - duration_seconds: Execution time (completion events only)
            - summary: Result or skip message

        For ERROR events:
            - stage: Where the failure happened (checkout, planning, ...)
            - error_message: Human-readable error description
    """

    event_type: EventType = Field(
        ...,
        description="The category of event being emitted",
    )

    push_id: str = Field(
        ...,
        min_length=1,
        description='Push identifier in format "{owner}/{repo}@{sha}"',
    )

    repository: str = Field(
        ...,
        min_length=1,
        description='Full repository path in format "{owner}/{repo}"',
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context specific to the event type",
    )

    def to_log_dict(self) -> Dict[str, Any]:
        """Convert event to a flat dictionary suitable for structured logging.

        Returns:
            Dict[str, Any]: Flat dictionary representation of the event.
        """
        return {
            "event_type": self.event_type.value,
            "push_id": self.push_id,
            "repository": self.repository,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }
