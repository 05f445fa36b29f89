"""Railyard pipeline engine - guards, steps and saga-style compensation.

Composes validation guards and state-changing steps into an immutable
pipeline that threads a context through each operation, stops at the
first failure and unwinds completed steps through their compensations.
Branches and switches add conditional and exclusive-choice routing.
"""

from railyard.pipeline.compensation import CompensationStack
from railyard.pipeline.engine import Pipeline
from railyard.pipeline.errors import PipelineBuildError, RailwayError
from railyard.pipeline.events import PipelineEvent, PipelineEventEmitter, PipelineEventType
from railyard.pipeline.models import Operation, OperationKind
from railyard.pipeline.protocols import BaseStep, FunctionGuard, FunctionStep, Guard, Step
from railyard.pipeline.result import Failure, Result, Success
from railyard.pipeline.switch import SwitchBuilder, SwitchCase

__all__ = [
    "BaseStep",
    "CompensationStack",
    "Failure",
    "FunctionGuard",
    "FunctionStep",
    "Guard",
    "Operation",
    "OperationKind",
    "Pipeline",
    "PipelineBuildError",
    "PipelineEvent",
    "PipelineEventEmitter",
    "PipelineEventType",
    "RailwayError",
    "Result",
    "Step",
    "Success",
    "SwitchBuilder",
    "SwitchCase",
]
