"""Predicate-gated runs of operations.

A branch wraps each record of its sub-pipeline so the whole run executes
or skips together.  The first wrapped record evaluates the predicate and
stores the outcome in the run's :class:`~railyard.pipeline.models.RunScope`;
the rest read it back.  The engine asks each wrapped record whether it
actually ran before pushing its compensation, so the decision is taken
once, when the record executes, and a later evaluation of the same branch
in the same run cannot undo it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from railyard.pipeline.models import ExecuteFn, Operation, RunScope
from railyard.pipeline.protocols import resolve
from railyard.pipeline.result import Result, Success

logger = logging.getLogger(__name__)


def gate_operations(
    predicate: Callable[[Any], Any],
    operations: Sequence[Operation],
) -> list[Operation]:
    """Wrap *operations* so they run only when *predicate* holds.

    Args:
        predicate: Called with the context reaching the first operation.
            Its truthiness decides the whole branch.
        operations: The branch's materialised records.

    Returns:
        The wrapped records, in the same order.
    """
    token = object()
    return [
        _gate(operation, predicate, token, evaluates=index == 0)
        for index, operation in enumerate(operations)
    ]


def _gate(
    operation: Operation,
    predicate: Callable[[Any], Any],
    token: object,
    evaluates: bool,
) -> Operation:
    inner_execute: ExecuteFn = operation.execute

    async def execute(context: Any, scope: RunScope) -> Result:
        if evaluates:
            taken = bool(await resolve(predicate(context)))
            scope.branch_flags[token] = taken
            logger.debug(
                "Branch at '%s' %s", operation.name, "taken" if taken else "skipped"
            )
        if not scope.branch_flags.get(token, False):
            return Success(context)
        return await inner_execute(context, scope)

    # Only meaningful right after execute returned, before anything else runs.
    def ran(scope: RunScope) -> bool:
        return scope.branch_flags.get(token, False) and operation.did_run(scope)

    return Operation(
        name=operation.name,
        kind=operation.kind,
        execute=execute,
        compensate=operation.compensate,
        ran=ran,
    )
