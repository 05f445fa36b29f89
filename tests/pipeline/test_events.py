"""Tests for pipeline lifecycle events."""

from __future__ import annotations

import pytest

from railyard.pipeline.engine import Pipeline
from railyard.pipeline.events import PipelineEvent, PipelineEventEmitter, PipelineEventType
from railyard.pipeline.protocols import FunctionStep
from railyard.pipeline.result import Failure, Success


def _recorder(emitter: PipelineEventEmitter) -> list[PipelineEvent]:
    seen: list[PipelineEvent] = []

    async def record(event: PipelineEvent) -> None:
        seen.append(event)

    emitter.on_any(record)
    return seen


def _inc(ctx: int) -> Success:
    return Success(ctx + 1)


def _fail(ctx: int) -> Failure:
    return Failure("boom")


class TestPipelineEventEmitter:
    async def test_on_registers_typed_listener(self) -> None:
        emitter = PipelineEventEmitter()
        seen: list[str] = []

        async def on_start(event: PipelineEvent) -> None:
            seen.append(event.pipeline_name)

        emitter.on(PipelineEventType.PIPELINE_START, on_start)
        await emitter.emit(PipelineEvent(type=PipelineEventType.PIPELINE_START, pipeline_name="p"))
        await emitter.emit(PipelineEvent(type=PipelineEventType.PIPELINE_COMPLETE, pipeline_name="p"))

        assert seen == ["p"]
        assert emitter.listener_count(PipelineEventType.PIPELINE_START) == 1
        assert emitter.listener_count(PipelineEventType.PIPELINE_COMPLETE) == 0

    async def test_callback_errors_are_logged_not_raised(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        emitter = PipelineEventEmitter()
        seen: list[PipelineEventType] = []

        async def broken(event: PipelineEvent) -> None:
            raise RuntimeError("listener down")

        async def healthy(event: PipelineEvent) -> None:
            seen.append(event.type)

        emitter.on(PipelineEventType.PIPELINE_START, broken)
        emitter.on(PipelineEventType.PIPELINE_START, healthy)

        await emitter.emit(PipelineEvent(type=PipelineEventType.PIPELINE_START))

        assert seen == [PipelineEventType.PIPELINE_START]
        assert "listener down" in caplog.text

    async def test_unsubscribe_stops_delivery(self) -> None:
        emitter = PipelineEventEmitter()
        seen: list[PipelineEventType] = []

        async def record(event: PipelineEvent) -> None:
            seen.append(event.type)

        unsubscribe = emitter.on_any(record)
        await emitter.emit(PipelineEvent(type=PipelineEventType.PIPELINE_START))
        unsubscribe()
        await emitter.emit(PipelineEvent(type=PipelineEventType.PIPELINE_COMPLETE))

        assert seen == [PipelineEventType.PIPELINE_START]
        assert emitter.listener_count() == 0

    def test_describe_renders_compensation_detail(self) -> None:
        event = PipelineEvent(
            type=PipelineEventType.COMPENSATION_FAILED,
            pipeline_name="saga",
            operation_name="reserve",
            error="undo failed",
            pending=2,
        )
        assert event.describe() == "saga compensation_failed reserve (2 pending) error=undo failed"
        assert event.type.is_compensation
        assert not PipelineEventType.PIPELINE_FAILED.is_compensation


class TestRunEvents:
    async def test_successful_run(self) -> None:
        emitter = PipelineEventEmitter()
        seen = _recorder(emitter)
        pipeline = Pipeline(name="ok", event_emitter=emitter).step(FunctionStep(_inc))

        await pipeline.run(0)

        assert [e.type for e in seen] == [
            PipelineEventType.PIPELINE_START,
            PipelineEventType.PIPELINE_COMPLETE,
        ]
        assert seen[0].data == {"operations": 1}
        assert all(e.pipeline_name == "ok" for e in seen)

    async def test_failed_run_reports_unwinding(self) -> None:
        emitter = PipelineEventEmitter()
        seen = _recorder(emitter)
        pipeline = (
            Pipeline(name="saga", event_emitter=emitter)
            .step(FunctionStep(_inc))
            .step(FunctionStep(_fail))
        )

        result = await pipeline.run(0)

        assert result == Failure("boom")
        assert [(e.type, e.operation_name) for e in seen] == [
            (PipelineEventType.PIPELINE_START, ""),
            (PipelineEventType.OPERATION_FAILED, "_fail"),
            (PipelineEventType.COMPENSATION_START, "_inc"),
            (PipelineEventType.COMPENSATION_COMPLETE, "_inc"),
            (PipelineEventType.PIPELINE_FAILED, ""),
        ]
        assert seen[-1].error == "boom"

    async def test_compensation_failure_event(self) -> None:
        emitter = PipelineEventEmitter()
        seen = _recorder(emitter)

        def undo(ctx: int) -> None:
            raise RuntimeError("undo failed")

        pipeline = (
            Pipeline(event_emitter=emitter)
            .step(FunctionStep(_inc, compensate=undo))
            .step(FunctionStep(_fail))
        )
        await pipeline.run(0)

        failed = [e for e in seen if e.type is PipelineEventType.COMPENSATION_FAILED]
        assert len(failed) == 1
        assert failed[0].operation_name == "_inc"
        assert failed[0].error == "undo failed"
        assert failed[0].pending == 0

    async def test_selector_failure_event(self) -> None:
        emitter = PipelineEventEmitter()
        seen = _recorder(emitter)

        def selector(ctx: int) -> int:
            raise KeyError("missing")

        pipeline = (
            Pipeline(event_emitter=emitter)
            .switch_on(selector, name="router")
            .when(1, lambda p: p.step(FunctionStep(_inc)))
            .end()
        )
        result = await pipeline.run(1)

        assert result == Success(1)
        selector_events = [
            e for e in seen if e.type is PipelineEventType.SWITCH_SELECTOR_FAILED
        ]
        assert [e.operation_name for e in selector_events] == ["router"]

    async def test_emitter_carried_through_builder(self) -> None:
        emitter = PipelineEventEmitter()
        pipeline = (
            Pipeline(event_emitter=emitter)
            .branch(lambda ctx: True, lambda p: p.step(FunctionStep(_inc)))
            .switch_on(lambda ctx: ctx)
            .otherwise(lambda p: p.step(FunctionStep(_inc)))
        )
        assert pipeline.event_emitter is emitter

    async def test_compensation_events_count_down_pending(self) -> None:
        emitter = PipelineEventEmitter()
        starts: list[tuple[str, int | None]] = []

        async def record(event: PipelineEvent) -> None:
            starts.append((event.operation_name, event.pending))

        emitter.on(PipelineEventType.COMPENSATION_START, record)
        pipeline = (
            Pipeline(event_emitter=emitter)
            .step(FunctionStep(_inc, name="first"))
            .step(FunctionStep(_inc, name="second"))
            .step(FunctionStep(_inc, name="third"))
            .step(FunctionStep(_fail))
        )
        await pipeline.run(0)

        assert starts == [("third", 2), ("second", 1), ("first", 0)]
