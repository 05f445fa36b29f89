"""Exceptions raised while assembling pipelines.

Run-time failures never surface as exceptions: guards and steps report
them through :class:`~railyard.pipeline.result.Failure`.  The classes here
cover mistakes made by the code that *builds* a pipeline.
"""

from __future__ import annotations


class RailwayError(Exception):
    """Base exception for all railyard errors."""


class PipelineBuildError(RailwayError):
    """Raised when a pipeline cannot be assembled.

    Attributes:
        component: What was being added when the error occurred
            (``"guard"``, ``"step"``, ``"branch"`` or ``"switch"``).
    """

    def __init__(self, message: str, *, component: str = "") -> None:
        super().__init__(message)
        self.component = component
