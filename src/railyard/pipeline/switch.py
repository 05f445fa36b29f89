"""Declarative switch/case routing inside a pipeline.

:meth:`Pipeline.switch_on <railyard.pipeline.engine.Pipeline.switch_on>`
returns a :class:`SwitchBuilder`.  Cases are added with :meth:`~SwitchBuilder.when`
(value equality) or :meth:`~SwitchBuilder.when_match` (predicate), and the
block is closed with :meth:`~SwitchBuilder.otherwise` or :meth:`~SwitchBuilder.end`.

Closing the block materialises every case once and appends a single
composite operation to the parent pipeline.  Per run, that operation
evaluates the selector once, picks the first matching case (or the
fallback) and runs its operations inline.  If one of them fails, the
case's own compensations are unwound right there, before the failure
reaches the parent pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from railyard.pipeline.compensation import CompensationStack
from railyard.pipeline.engine import Pipeline, build_sub_pipeline, execute_operations
from railyard.pipeline.events import PipelineEventType
from railyard.pipeline.models import Operation, OperationKind, RunScope
from railyard.pipeline.protocols import resolve
from railyard.pipeline.result import Result, Success

logger = logging.getLogger(__name__)

CaseBuilder = Callable[[Pipeline], Pipeline]


@dataclass(frozen=True)
class SwitchCase:
    """A single switch case.

    Attributes:
        builder: Builds the case's sub-pipeline from an empty one.
        match_value: Value compared with ``==`` (for ``when`` cases).
        predicate: Callable tested against the selector value (for
            ``when_match`` cases).  Takes precedence over *match_value*.
    """

    builder: CaseBuilder
    match_value: Any = None
    predicate: Callable[[Any], Any] | None = None

    async def matches(self, selected: Any) -> bool:
        """Return whether this case accepts the selector output *selected*."""
        if self.predicate is not None:
            return bool(await resolve(self.predicate(selected)))
        return self.match_value == selected


class SwitchBuilder:
    """Fluent, immutable collector of switch cases.

    Each :meth:`when` / :meth:`when_match` call returns a new builder, so a
    partially-built switch can be shared safely.

    Example::

        pipeline = (
            Pipeline()
            .switch_on(lambda ctx: ctx.age)
            .when_match(lambda age: age < 18, lambda p: p.step(MinorFlow()))
            .when_match(lambda age: age < 65, lambda p: p.step(AdultFlow()))
            .otherwise(lambda p: p.step(SeniorFlow()))
        )
    """

    def __init__(
        self,
        pipeline: Pipeline,
        selector: Callable[[Any], Any],
        cases: tuple[SwitchCase, ...] = (),
        name: str = "switch",
    ) -> None:
        self._pipeline = pipeline
        self._selector = selector
        self._cases = cases
        self._name = name

    @property
    def cases(self) -> tuple[SwitchCase, ...]:
        return self._cases

    def _with_case(self, case: SwitchCase) -> SwitchBuilder:
        return SwitchBuilder(
            self._pipeline, self._selector, (*self._cases, case), name=self._name
        )

    def when(self, value: Any, builder: CaseBuilder) -> SwitchBuilder:
        """Add a case taken when the selector output equals *value*."""
        return self._with_case(SwitchCase(builder=builder, match_value=value))

    def when_match(
        self,
        predicate: Callable[[Any], Any],
        builder: CaseBuilder,
    ) -> SwitchBuilder:
        """Add a case taken when *predicate* accepts the selector output.

        Useful for ranges and other conditions that are not plain equality.
        """
        return self._with_case(SwitchCase(builder=builder, predicate=predicate))

    def otherwise(self, builder: CaseBuilder) -> Pipeline:
        """Close the switch with a fallback run when no case matches."""
        return self._finalize(builder)

    def end(self) -> Pipeline:
        """Close the switch without a fallback.

        When no case matches, the context passes through unchanged.
        """
        return self._finalize(None)

    def _finalize(self, fallback: CaseBuilder | None) -> Pipeline:
        cases = self._cases
        case_operations = [
            build_sub_pipeline(case.builder, "switch").operations for case in cases
        ]
        fallback_operations = (
            build_sub_pipeline(fallback, "switch").operations
            if fallback is not None
            else None
        )
        selector = self._selector
        name = self._name

        async def execute(entry_context: Any, scope: RunScope) -> Result:
            try:
                selected = await resolve(selector(entry_context))
            except Exception as exc:
                # Selector failures route nowhere instead of failing the run.
                logger.warning(
                    "Selector of '%s' in pipeline '%s' raised, passing context through: %s",
                    name,
                    scope.pipeline_name,
                    exc,
                )
                await scope.emit(
                    PipelineEventType.SWITCH_SELECTOR_FAILED, name, error=str(exc)
                )
                return Success(entry_context)

            operations = fallback_operations
            for index, case in enumerate(cases):
                if await case.matches(selected):
                    logger.debug("Switch '%s' matched case %d", name, index)
                    operations = case_operations[index]
                    break

            if not operations:
                return Success(entry_context)
            return await execute_operations(
                operations, entry_context, scope, CompensationStack()
            )

        return self._pipeline.extend([Operation(
            name=name,
            kind=OperationKind.SWITCH,
            execute=execute,
        )])
