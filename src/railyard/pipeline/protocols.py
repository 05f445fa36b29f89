"""Collaborator contracts consumed by the pipeline engine.

A :class:`Guard` validates a context without changing it.  A :class:`Step`
produces a new context and may declare a compensating action that undoes
its effects when a later operation fails.  Both methods may be plain
functions or coroutines; the engine awaits whatever they return when it is
awaitable.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from railyard.pipeline.result import Result


async def resolve(value: Any) -> Any:
    """Await *value* if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


@runtime_checkable
class Guard(Protocol):
    """Read-only validation operation."""

    def check(self, context: Any) -> Result | Awaitable[Result]:
        """Validate *context*.

        Returns:
            ``Success(None)`` to let the pipeline continue, or
            ``Failure(error)`` to stop it.  The context must not be changed.
        """
        ...


@runtime_checkable
class Step(Protocol):
    """State-changing operation."""

    def run(self, context: Any) -> Result | Awaitable[Result]:
        """Produce a new context from *context*, or report a failure."""
        ...


class BaseStep:
    """Convenience base class for steps.

    Subclasses implement :meth:`run` and override :meth:`compensate` when
    their effects need undoing.  Compensation is best-effort cleanup: it runs
    in reverse order after a later failure, receives the context captured
    right after this step succeeded, and any exception it raises is logged
    and suppressed.
    """

    async def run(self, context: Any) -> Result:
        raise NotImplementedError

    async def compensate(self, context: Any) -> None:
        """Undo the effects of :meth:`run`.  Does nothing by default."""


class FunctionGuard:
    """Adapt a plain callable to the :class:`Guard` protocol."""

    def __init__(
        self,
        check: Callable[[Any], Result | Awaitable[Result]],
        name: str | None = None,
    ) -> None:
        self._check = check
        self.name = name or getattr(check, "__name__", "guard")

    async def check(self, context: Any) -> Result:
        return await resolve(self._check(context))

    def __repr__(self) -> str:
        return f"FunctionGuard({self.name!r})"


class FunctionStep(BaseStep):
    """Adapt plain callables to the :class:`Step` protocol.

    Args:
        run: Callable producing ``Success(new_context)`` or ``Failure(error)``.
        compensate: Optional undo callable receiving the captured context.
        name: Label used in logs and events; defaults to ``run.__name__``.
    """

    def __init__(
        self,
        run: Callable[[Any], Result | Awaitable[Result]],
        compensate: Callable[[Any], Any] | None = None,
        name: str | None = None,
    ) -> None:
        self._run = run
        self._compensate = compensate
        self.name = name or getattr(run, "__name__", "step")

    async def run(self, context: Any) -> Result:
        return await resolve(self._run(context))

    async def compensate(self, context: Any) -> None:
        if self._compensate is not None:
            await resolve(self._compensate(context))

    def __repr__(self) -> str:
        return f"FunctionStep({self.name!r})"
