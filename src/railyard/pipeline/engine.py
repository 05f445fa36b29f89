"""Pipeline builder and execution engine.

A :class:`Pipeline` is an immutable, ordered tuple of
:class:`~railyard.pipeline.models.Operation` records.  Builder methods
(:meth:`~Pipeline.guard`, :meth:`~Pipeline.step`, :meth:`~Pipeline.branch`,
:meth:`~Pipeline.switch_on`) return a new pipeline and leave the receiver
untouched, so one pipeline value can be extended in several directions and
run any number of times, concurrently if need be.

:meth:`Pipeline.run` threads a context through the records in order.  The
first failure stops forward execution and unwinds the compensations of the
steps that already succeeded, newest first.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable

from railyard.pipeline.branch import gate_operations
from railyard.pipeline.compensation import CompensationStack
from railyard.pipeline.errors import PipelineBuildError
from railyard.pipeline.events import PipelineEventEmitter, PipelineEventType
from railyard.pipeline.models import Operation, OperationKind, RunScope
from railyard.pipeline.protocols import resolve
from railyard.pipeline.result import Failure, Result, Success

if TYPE_CHECKING:
    from railyard.pipeline.switch import SwitchBuilder

logger = logging.getLogger(__name__)


def operation_name(component: Any) -> str:
    """Return a label for a guard or step: its ``name`` or its class name."""
    name = getattr(component, "name", None)
    if isinstance(name, str) and name:
        return name
    return type(component).__name__


def _require_method(component: Any, method: str, kind: str) -> Callable[..., Any]:
    bound = getattr(component, method, None)
    if not callable(bound):
        raise PipelineBuildError(
            f"{type(component).__name__} cannot be used as a {kind}: "
            f"it has no callable '{method}' method",
            component=kind,
        )
    return bound


def _check_result(outcome: Any, name: str) -> Result:
    if not isinstance(outcome, (Success, Failure)):
        raise TypeError(
            f"Operation '{name}' returned {type(outcome).__name__}, "
            "expected Success or Failure"
        )
    return outcome


async def execute_operations(
    operations: Iterable[Operation],
    initial: Any,
    scope: RunScope,
    stack: CompensationStack,
) -> Result:
    """Run *operations* in order starting from *initial*.

    Successful records that carry a compensate push it onto *stack* with
    the context they produced, unless an enclosing branch skipped them.
    On the first failure the stack is unwound and the failure returned; no
    further record runs.

    Raises:
        TypeError: If an operation, or the guard behind it, returns
            something other than a result.
    """
    current: Result = Success(initial)
    for operation in operations:
        if current.is_failure:
            break

        current = _check_result(
            await operation.execute(current.context, scope), operation.name
        )

        if current.is_success:
            if operation.compensate is not None and operation.did_run(scope):
                stack.push(operation.name, operation.compensate, current.context)
            continue

        logger.debug(
            "Operation '%s' failed with %r; unwinding %d compensation(s)",
            operation.name,
            current.error,
            len(stack),
        )
        await scope.emit(
            PipelineEventType.OPERATION_FAILED,
            operation.name,
            error=current.error,
        )
        await stack.unwind(scope)

    return current


class Pipeline:
    """Immutable sequence of guards and steps.

    Args:
        operations: Initial operation records.  Usually left empty and
            populated through the builder methods.
        name: Label used in logs and events.
        event_emitter: Optional emitter receiving lifecycle events for
            every run of this pipeline.

    Example::

        pipeline = (
            Pipeline(name="signup")
            .guard(EmailValidationGuard())
            .step(CreateUserStep())
            .branch(lambda ctx: ctx.is_premium, lambda p: p.step(GrantTrial()))
            .switch_on(lambda ctx: ctx.user_type)
            .when(UserType.ADMIN, lambda p: p.step(GrantAdmin()))
            .otherwise(lambda p: p.step(SetupDashboard()))
        )
        result = await pipeline.run(SignupContext(email="a@b.com"))
    """

    def __init__(
        self,
        operations: Iterable[Operation] = (),
        *,
        name: str = "pipeline",
        event_emitter: PipelineEventEmitter | None = None,
    ) -> None:
        self._operations: tuple[Operation, ...] = tuple(operations)
        self._name = name
        self._event_emitter = event_emitter

    @property
    def name(self) -> str:
        return self._name

    @property
    def event_emitter(self) -> PipelineEventEmitter | None:
        return self._event_emitter

    @property
    def operations(self) -> tuple[Operation, ...]:
        """Return the operation records in execution order."""
        return self._operations

    def __len__(self) -> int:
        return len(self._operations)

    def __repr__(self) -> str:
        names = ", ".join(op.name for op in self._operations)
        return f"Pipeline({self._name!r}, [{names}])"

    # ------------------------------------------------------------------
    # Builder
    # ------------------------------------------------------------------

    def extend(self, operations: Iterable[Operation]) -> Pipeline:
        """Return a new pipeline with *operations* appended.

        The new pipeline keeps this pipeline's name and event emitter.
        """
        return Pipeline(
            (*self._operations, *operations),
            name=self._name,
            event_emitter=self._event_emitter,
        )

    def guard(self, guard: Any) -> Pipeline:
        """Append a read-only validation.

        The guard's ``check`` result decides whether the pipeline goes on;
        on success the context passes through unchanged.  Guards never
        compensate.

        Raises:
            PipelineBuildError: If *guard* has no callable ``check``.
        """
        check = _require_method(guard, "check", "guard")
        name = operation_name(guard)

        async def execute(context: Any, scope: RunScope) -> Result:
            outcome = _check_result(await resolve(check(context)), name)
            if outcome.is_failure:
                return Failure(outcome.error)
            return Success(context)

        return self.extend([Operation(
            name=name,
            kind=OperationKind.GUARD,
            execute=execute,
        )])

    def step(self, step: Any) -> Pipeline:
        """Append a state-changing step.

        The step's ``run`` result becomes the next context.  Its
        ``compensate`` method, if any, is recorded for unwinding; steps
        without one get a no-op.

        Raises:
            PipelineBuildError: If *step* has no callable ``run``.
        """
        run = _require_method(step, "run", "step")
        undo = getattr(step, "compensate", None)
        if undo is not None and not callable(undo):
            raise PipelineBuildError(
                f"{type(step).__name__}.compensate is not callable",
                component="step",
            )

        async def execute(context: Any, scope: RunScope) -> Result:
            return await resolve(run(context))

        async def compensate(context: Any, scope: RunScope) -> None:
            if undo is not None:
                await resolve(undo(context))

        return self.extend([Operation(
            name=operation_name(step),
            kind=OperationKind.STEP,
            execute=execute,
            compensate=compensate,
        )])

    def branch(
        self,
        predicate: Callable[[Any], Any],
        builder: Callable[[Pipeline], Pipeline],
    ) -> Pipeline:
        """Append a sub-pipeline that only runs when *predicate* holds.

        *builder* is called once, right away, with an empty pipeline.  Its
        operations are inlined into this pipeline, so they share the
        top-level compensation stack.  *predicate* is evaluated once per run,
        against the context reaching the first of those operations.

        Returns:
            A new pipeline, or this pipeline itself when *builder* adds
            nothing.
        """
        sub_pipeline = build_sub_pipeline(builder, "branch")
        if not sub_pipeline.operations:
            return self
        return self.extend(gate_operations(predicate, sub_pipeline.operations))

    def switch_on(
        self,
        selector: Callable[[Any], Any],
        name: str = "switch",
    ) -> SwitchBuilder:
        """Start an exclusive-choice routing block.

        Args:
            selector: Computes the value cases are matched against.  It is
                evaluated once per run.
            name: Label of the composite operation in logs and events.

        Returns:
            A :class:`~railyard.pipeline.switch.SwitchBuilder`; finish it with
            ``otherwise()`` or ``end()`` to get back a pipeline.
        """
        from railyard.pipeline.switch import SwitchBuilder

        return SwitchBuilder(self, selector, name=name)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, initial: Any) -> Result:
        """Execute the pipeline against *initial*.

        Returns:
            ``Success`` with the final context when every operation
            succeeded, otherwise the first ``Failure``.  Compensation errors
            are logged and never replace the returned failure.
        """
        scope = RunScope(pipeline_name=self._name, event_emitter=self._event_emitter)
        await scope.emit(
            PipelineEventType.PIPELINE_START,
            operations=len(self._operations),
        )

        result = await execute_operations(
            self._operations, initial, scope, CompensationStack()
        )

        if result.is_failure:
            logger.info("Pipeline '%s' failed: %r", self._name, result.error)
            await scope.emit(PipelineEventType.PIPELINE_FAILED, error=result.error)
        else:
            logger.debug("Pipeline '%s' completed", self._name)
            await scope.emit(PipelineEventType.PIPELINE_COMPLETE)
        return result


def build_sub_pipeline(
    builder: Callable[[Pipeline], Pipeline],
    component: str,
) -> Pipeline:
    """Materialise a branch or switch case by calling *builder* on an empty pipeline.

    Raises:
        PipelineBuildError: If *builder* does not return a :class:`Pipeline`.
    """
    sub_pipeline = builder(Pipeline())
    if not isinstance(sub_pipeline, Pipeline):
        raise PipelineBuildError(
            f"{component} builder must return a Pipeline, "
            f"got {type(sub_pipeline).__name__}",
            component=component,
        )
    return sub_pipeline
