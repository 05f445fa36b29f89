"""Two-channel result values.

Every guard, step and pipeline run reports its outcome as either a
:class:`Failure` carrying an application error or a :class:`Success`
carrying the (new) context.  The engine only ever branches on which
variant it holds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class Success:
    """Successful outcome holding the context produced by an operation.

    Attributes:
        context: The context value.  Guards report ``Success(None)``.
    """

    context: Any = None

    @property
    def is_success(self) -> bool:
        return True

    @property
    def is_failure(self) -> bool:
        return False

    def fold(
        self,
        on_failure: Callable[[Any], Any],
        on_success: Callable[[Any], Any],
    ) -> Any:
        """Apply *on_success* to the context and return its result."""
        return on_success(self.context)


@dataclass(frozen=True)
class Failure:
    """Failed outcome holding the application error.

    Attributes:
        error: The error value, usually an enum member.
    """

    error: Any

    @property
    def is_success(self) -> bool:
        return False

    @property
    def is_failure(self) -> bool:
        return True

    def fold(
        self,
        on_failure: Callable[[Any], Any],
        on_success: Callable[[Any], Any],
    ) -> Any:
        """Apply *on_failure* to the error and return its result."""
        return on_failure(self.error)


Result = Success | Failure
