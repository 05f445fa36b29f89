"""Lifecycle events for pipeline runs.

Every run reports what it does through an optional
:class:`PipelineEventEmitter`: start and end of the run, the operation that
failed, and one event per compensation while the stack unwinds.  Listeners
are async callables; a listener that raises is logged and skipped, it never
changes the outcome of the run.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Mapping

logger = logging.getLogger(__name__)


class PipelineEventType(str, enum.Enum):
    """What happened."""

    PIPELINE_START = "pipeline_start"
    PIPELINE_COMPLETE = "pipeline_complete"
    PIPELINE_FAILED = "pipeline_failed"
    OPERATION_FAILED = "operation_failed"
    COMPENSATION_START = "compensation_start"
    COMPENSATION_COMPLETE = "compensation_complete"
    COMPENSATION_FAILED = "compensation_failed"
    SWITCH_SELECTOR_FAILED = "switch_selector_failed"

    @property
    def is_compensation(self) -> bool:
        return self.value.startswith("compensation_")


@dataclass(frozen=True)
class PipelineEvent:
    """One lifecycle event.

    Attributes:
        type: The event category.
        pipeline_name: Name of the pipeline that was running.
        operation_name: The operation concerned, or ``""`` for run-level
            events.
        error: The ``Failure`` error for failure events, or the message of
            the exception for ``COMPENSATION_FAILED`` and
            ``SWITCH_SELECTOR_FAILED``.
        pending: For compensation events, how many compensations are still
            waiting on the stack after this one.
        data: Extra payload, e.g. ``operations`` on ``PIPELINE_START``.
        timestamp: UNIX epoch when the event was created.
    """

    type: PipelineEventType
    pipeline_name: str = ""
    operation_name: str = ""
    error: Any = None
    pending: int | None = None
    data: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def describe(self) -> str:
        """Render the event as one line: ``pipeline type [operation] [detail]``."""
        parts = [self.pipeline_name, self.type.value]
        if self.operation_name:
            parts.append(self.operation_name)
        if self.pending is not None:
            parts.append(f"({self.pending} pending)")
        if self.error is not None:
            parts.append(f"error={getattr(self.error, 'value', self.error)}")
        return " ".join(parts)


EventCallback = Callable[[PipelineEvent], Coroutine[Any, Any, None]]


@dataclass(frozen=True, eq=False)
class _Subscription:
    callback: EventCallback
    event_type: PipelineEventType | None

    def wants(self, event: PipelineEvent) -> bool:
        return self.event_type is None or self.event_type is event.type


class PipelineEventEmitter:
    """Dispatches :class:`PipelineEvent` objects to registered listeners.

    Listeners are called in registration order, typed and catch-all
    listeners interleaved.  Both :meth:`on` and :meth:`on_any` return a
    function that removes the listener again.
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []

    def on(
        self, event_type: PipelineEventType, callback: EventCallback
    ) -> Callable[[], None]:
        """Call *callback* for every event of *event_type*."""
        return self._subscribe(_Subscription(callback, event_type))

    def on_any(self, callback: EventCallback) -> Callable[[], None]:
        """Call *callback* for every event."""
        return self._subscribe(_Subscription(callback, None))

    def listener_count(self, event_type: PipelineEventType | None = None) -> int:
        """Number of listeners that would receive an event of *event_type*.

        With no argument, count every registered listener.
        """
        if event_type is None:
            return len(self._subscriptions)
        return sum(
            1 for sub in self._subscriptions if sub.event_type in (None, event_type)
        )

    def _subscribe(self, subscription: _Subscription) -> Callable[[], None]:
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    async def emit(self, event: PipelineEvent) -> None:
        """Deliver *event* to every interested listener.

        A listener that raises is logged at ERROR and the remaining
        listeners still run.
        """
        for subscription in list(self._subscriptions):
            if not subscription.wants(event):
                continue
            try:
                await subscription.callback(event)
            except Exception as exc:
                logger.error(
                    "Listener %s failed on %s from pipeline '%s': %s",
                    getattr(subscription.callback, "__name__", subscription.callback),
                    event.type.value,
                    event.pipeline_name,
                    exc,
                )
