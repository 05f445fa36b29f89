"""Compensation stack and best-effort unwinding.

After a step succeeds, its undo action is pushed together with the context
it produced.  When a later operation fails, the stack is drained from the
top: every compensation runs, in reverse order of successful execution, and
any exception it raises is logged and swallowed.  The caller always gets
the original failure back.
"""

from __future__ import annotations

import logging
from typing import Any

from railyard.pipeline.events import PipelineEventType
from railyard.pipeline.models import CompensationEntry, CompensateFn, RunScope

logger = logging.getLogger(__name__)


class CompensationStack:
    """LIFO stack of :class:`CompensationEntry` objects for one run."""

    def __init__(self) -> None:
        self._entries: list[CompensationEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[CompensationEntry]:
        """Return the pending entries, oldest first."""
        return list(self._entries)

    def push(self, operation_name: str, compensate: CompensateFn, context: Any) -> None:
        """Record an undo action and the context it should receive."""
        self._entries.append(CompensationEntry(operation_name, compensate, context))

    async def unwind(self, scope: RunScope) -> int:
        """Run every pending compensation, newest first, and empty the stack.

        Args:
            scope: State of the run being unwound.

        Returns:
            The number of compensations that raised.
        """
        failures = 0
        while self._entries:
            entry = self._entries.pop()
            pending = len(self._entries)
            await scope.emit(
                PipelineEventType.COMPENSATION_START, entry.operation_name, pending=pending
            )
            try:
                await entry.compensate(entry.context, scope)
            except Exception as exc:
                failures += 1
                logger.warning(
                    "Compensation for '%s' in pipeline '%s' failed: %s",
                    entry.operation_name,
                    scope.pipeline_name,
                    exc,
                )
                await scope.emit(
                    PipelineEventType.COMPENSATION_FAILED,
                    entry.operation_name,
                    error=str(exc),
                    pending=pending,
                )
                continue
            logger.debug("Compensated '%s'", entry.operation_name)
            await scope.emit(
                PipelineEventType.COMPENSATION_COMPLETE, entry.operation_name, pending=pending
            )
        return failures
