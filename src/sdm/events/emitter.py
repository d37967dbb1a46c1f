"""Event emitter implementations for delivery observability.

This module provides an abstract EventEmitter interface and concrete
implementations for different event sinks:

- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- NullEventEmitter: Discards events

The metrics sink lives in metrics.py and is wired in by
create_event_emitter.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence

from src.sdm.events.models import DeliveryEvent, EventType


logger = logging.getLogger(__name__)


class EventSinkType(str, Enum):
    """Types of event sinks supported by the machine.

    Attributes:
        LOGGING: Emit events as structured log entries.
        METRICS: Emit events as Prometheus metrics.
    """

    LOGGING = "logging"
    METRICS = "metrics"


class EventEmitter(ABC):
    """Abstract base class for delivery event emitters.

    Implementations should be async-safe and should not let sink failures
    escape into goal execution.
    """

    @abstractmethod
    async def emit(self, event: DeliveryEvent) -> None:
        """Emit a delivery event.

        Args:
            event: The delivery event to emit.
        """

    async def close(self) -> None:
        """Close the emitter and release resources."""


class LoggingEventEmitter(EventEmitter):
    """Writes each delivery event as one log record.

    Failed goals and errors log at ERROR, skipped goals at WARNING and
    everything else at INFO. Event fields travel in the record's extras.
    """

    LEVELS = {
        EventType.GOAL_FAILED: logging.ERROR,
        EventType.ERROR: logging.ERROR,
        EventType.GOAL_SKIPPED: logging.WARNING,
    }

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name) if logger_name else logger

    async def emit(self, event: DeliveryEvent) -> None:
        self._logger.log(
            self.LEVELS.get(event.event_type, logging.INFO),
            "Delivery event: %s for %s",
            event.event_type.value,
            event.push_id,
            extra=event.to_log_dict(),
        )


class CompositeEventEmitter(EventEmitter):
    """Fans each event out to several sinks.

    A sink that raises is logged and skipped; the remaining sinks still
    receive the event.
    """

    def __init__(self, emitters: Optional[Sequence[EventEmitter]] = None):
        self._emitters: List[EventEmitter] = list(emitters or [])

    @property
    def emitters(self) -> List[EventEmitter]:
        return list(self._emitters)

    async def emit(self, event: DeliveryEvent) -> None:
        for sink in self._emitters:
            try:
                await sink.emit(event)
            except Exception:
                logger.exception(
                    "Event sink %s rejected %s",
                    type(sink).__name__,
                    event.event_type.value,
                    extra={"sink": type(sink).__name__, "push_id": event.push_id},
                )

    async def close(self) -> None:
        for sink in self._emitters:
            try:
                await sink.close()
            except Exception:
                logger.exception("Event sink %s failed to close", type(sink).__name__)


class NullEventEmitter(EventEmitter):
    """Drops every event."""

    async def emit(self, event: DeliveryEvent) -> None:
        return None


def create_event_emitter(
    sink_types: Optional[Sequence[EventSinkType]] = None,
    logger_name: Optional[str] = None,
) -> EventEmitter:
    """Build the emitter for the configured sinks.

    No sinks means logging only. One sink is returned as is; several are
    wrapped in a CompositeEventEmitter in the order given.
    """
    sinks: List[EventEmitter] = []
    for sink_type in sink_types or [EventSinkType.LOGGING]:
        if sink_type == EventSinkType.LOGGING:
            sinks.append(LoggingEventEmitter(logger_name=logger_name))
        elif sink_type == EventSinkType.METRICS:
            # metrics.py imports this module
            from src.sdm.events.metrics import MetricsEventEmitter

            sinks.append(MetricsEventEmitter())
        else:
            logger.warning("Ignoring unknown event sink %s", sink_type)

    if not sinks:
        return LoggingEventEmitter(logger_name=logger_name)
    return sinks[0] if len(sinks) == 1 else CompositeEventEmitter(sinks)
