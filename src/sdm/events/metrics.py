"""Prometheus metrics for delivery observability.

Metrics Defined:
- sdm_pushes_received_total: Counter of pushes accepted per repository
- sdm_goal_executions_total: Counter of finished goals per goal and result
- sdm_goal_duration_seconds: Histogram of goal execution time per goal
- sdm_push_errors_total: Counter of push handling failures per stage

The MetricsEventEmitter updates these metrics from delivery events.
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from src.sdm.events.emitter import EventEmitter
from src.sdm.events.models import DeliveryEvent, EventType


logger = logging.getLogger(__name__)


# Covers quick checks through long Maven builds and deployments
DEFAULT_DURATION_BUCKETS = (
    0.5,
    1.0,
    5.0,
    15.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
    1800.0,
)

GOAL_RESULTS = {
    EventType.GOAL_SUCCEEDED: "success",
    EventType.GOAL_FAILED: "failure",
    EventType.GOAL_SKIPPED: "skipped",
}


class DeliveryMetrics:
    """Container for all delivery Prometheus metrics.

    Pass a custom registry in tests to avoid duplicate registration
    against the process-wide default registry.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        self.pushes_received_total = Counter(
            "sdm_pushes_received_total",
            "Total number of pushes accepted by the delivery machine",
            labelnames=["repository"],
            registry=self.registry,
        )

        self.goal_executions_total = Counter(
            "sdm_goal_executions_total",
            "Total number of goals that finished, by result",
            labelnames=["goal", "result"],
            registry=self.registry,
        )

        self.goal_duration_seconds = Histogram(
            "sdm_goal_duration_seconds",
            "Time spent executing goals in seconds",
            labelnames=["goal"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

        self.push_errors_total = Counter(
            "sdm_push_errors_total",
            "Total number of push handling failures outside goal execution",
            labelnames=["repository", "stage"],
            registry=self.registry,
        )

    def record_push(self, repository: str) -> None:
        self.pushes_received_total.labels(repository=repository).inc()

    def record_goal(
        self,
        goal: str,
        result: str,
        duration_seconds: Optional[float] = None,
    ) -> None:
        """Record a finished goal and its duration when one was measured."""
        self.goal_executions_total.labels(goal=goal, result=result).inc()
        if duration_seconds is not None:
            self.goal_duration_seconds.labels(goal=goal).observe(duration_seconds)

    def record_push_error(self, repository: str, stage: str) -> None:
        self.push_errors_total.labels(repository=repository, stage=stage).inc()


_default_metrics: Optional[DeliveryMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> DeliveryMetrics:
    """Get the process-wide metrics, or a fresh instance for a custom registry."""
    global _default_metrics

    if registry is not None:
        return DeliveryMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = DeliveryMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus text output for the /metrics endpoint."""
    return generate_latest(registry or REGISTRY)


class MetricsEventEmitter(EventEmitter):
    """Event emitter that updates Prometheus metrics.

    - PUSH_RECEIVED: increments pushes_received_total
    - GOAL_SUCCEEDED / GOAL_FAILED / GOAL_SKIPPED: increments
      goal_executions_total and observes the goal duration
    - ERROR: increments push_errors_total
    """

    def __init__(
        self,
        metrics: Optional[DeliveryMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        self._metrics = metrics if metrics is not None else get_metrics(registry)

    @property
    def metrics(self) -> DeliveryMetrics:
        return self._metrics

    async def emit(self, event: DeliveryEvent) -> None:
        """Update metrics based on the delivery event."""
        try:
            if event.event_type == EventType.PUSH_RECEIVED:
                self._metrics.record_push(event.repository)
            elif event.event_type in GOAL_RESULTS:
                duration = event.details.get("duration_seconds")
                self._metrics.record_goal(
                    goal=event.details.get("goal", "unknown"),
                    result=GOAL_RESULTS[event.event_type],
                    duration_seconds=float(duration) if duration is not None else None,
                )
            elif event.event_type == EventType.ERROR:
                self._metrics.record_push_error(
                    repository=event.repository,
                    stage=event.details.get("stage", "unknown"),
                )
        except Exception as e:
            logger.error(
                "Failed to update metrics for event %s: %s",
                event.event_type.value,
                str(e),
                extra={
                    "event_type": event.event_type.value,
                    "push_id": event.push_id,
                },
            )
