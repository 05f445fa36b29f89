"""Pipeline data models.

Defines the operation record that every guard, step, branch and switch is
turned into, and the per-run state the engine threads through execution.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from railyard.pipeline.events import PipelineEvent, PipelineEventEmitter, PipelineEventType
from railyard.pipeline.result import Result


class OperationKind(str, enum.Enum):
    """Which builder call produced an operation record."""

    GUARD = "guard"
    STEP = "step"
    SWITCH = "switch"


@dataclass
class RunScope:
    """Mutable state owned by a single :meth:`Pipeline.run` call.

    Nothing in here outlives the run it was created for, which is what
    lets independent runs of one pipeline execute concurrently.

    Attributes:
        pipeline_name: Name of the pipeline being run, for logs and events.
        event_emitter: Optional emitter receiving lifecycle events.
        branch_flags: Cached predicate outcome per branch, keyed by the
            branch's identity token.
    """

    pipeline_name: str = "pipeline"
    event_emitter: PipelineEventEmitter | None = None
    branch_flags: dict[object, bool] = field(default_factory=dict)

    async def emit(
        self,
        event_type: PipelineEventType,
        operation_name: str = "",
        *,
        error: Any = None,
        pending: int | None = None,
        **data: Any,
    ) -> None:
        """Emit a pipeline event if an emitter is configured."""
        if self.event_emitter is not None:
            await self.event_emitter.emit(PipelineEvent(
                type=event_type,
                pipeline_name=self.pipeline_name,
                operation_name=operation_name,
                error=error,
                pending=pending,
                data=data,
            ))


ExecuteFn = Callable[[Any, RunScope], Awaitable[Result]]
CompensateFn = Callable[[Any, RunScope], Awaitable[None]]
RanFn = Callable[[RunScope], bool]


@dataclass(frozen=True)
class Operation:
    """One record in a pipeline.

    Attributes:
        name: Label used in logs and events.
        kind: The builder call that produced this record.
        execute: Coroutine function ``(context, scope) -> Result``.
        compensate: Coroutine function ``(context, scope) -> None`` undoing
            a successful ``execute``.  Only step-derived records carry one.
        ran: Asked right after a successful ``execute`` whether the record
            did its work or was skipped by an enclosing branch.  ``None``
            means it always runs.  Skipped records push no compensation.
    """

    name: str
    kind: OperationKind
    execute: ExecuteFn
    compensate: CompensateFn | None = None
    ran: RanFn | None = None

    def did_run(self, scope: RunScope) -> bool:
        return self.ran is None or self.ran(scope)


@dataclass(frozen=True)
class CompensationEntry:
    """A pending undo action recorded after a step succeeded.

    Attributes:
        operation_name: Name of the step that produced the entry.
        compensate: The record's compensate function.
        context: Context captured right after the step succeeded.
    """

    operation_name: str
    compensate: CompensateFn
    context: Any
