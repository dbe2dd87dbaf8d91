"""周期编排状态机：使用手动时钟驱动 tick 与周期定时器。"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Optional

import pytest

from interviewlens.adapters.base import FrameClassifier, SpeakingMetricAdapter
from interviewlens.config import AppConfig
from interviewlens.core.models import (
    FillerWords,
    FrameClassification,
    LabelReading,
    PhoneDetection,
    SpeakingMetric,
)
from interviewlens.core.orchestrator import CycleOrchestrator, OrchestratorState
from interviewlens.core.scheduler import AsyncioScheduler, ManualScheduler


def _classification(eye: bool = True, expression: str = "happy") -> FrameClassification:
    return FrameClassification(
        expression=LabelReading(expression, 0.9),
        eye_contact=eye,
        posture=LabelReading("upright", 0.8),
        phone=PhoneDetection(),
    )


class ScriptedClassifier(FrameClassifier):
    """按顺序返回预设结果，用尽后重复最后一个。"""

    def __init__(self, script: list[FrameClassification], delay: float = 0.0) -> None:
        self._script = script
        self._delay = delay
        self.calls = 0

    async def analyze(self, frame: Any) -> FrameClassification:
        if self._delay:
            await asyncio.sleep(self._delay)
        result = self._script[min(self.calls, len(self._script) - 1)]
        self.calls += 1
        return result


class FixedSpeaking(SpeakingMetricAdapter):
    def __init__(self, score: float = 0.6) -> None:
        self._score = score

    async def analyze_speaking_skills(self) -> SpeakingMetric:
        return SpeakingMetric(self._score, FillerWords(um=1))


def _orchestrator(
    classifier: Optional[FrameClassifier] = None,
    config: Optional[AppConfig] = None,
    scheduler: Optional[ManualScheduler] = None,
    frame_source=None,
) -> tuple[CycleOrchestrator, ManualScheduler]:
    scheduler = scheduler or ManualScheduler()
    orchestrator = CycleOrchestrator(
        classifier=classifier or ScriptedClassifier([_classification()]),
        speaking=FixedSpeaking(),
        frame_source=frame_source,
        config=config or AppConfig(),
        scheduler=scheduler,
    )
    return orchestrator, scheduler


def test_ten_ticks_produce_cycle_and_eye_contact_rate() -> None:
    script = [_classification(eye=tick not in (3, 7)) for tick in range(1, 11)]
    orchestrator, scheduler = _orchestrator(ScriptedClassifier(script))

    async def scenario() -> None:
        assert orchestrator.start_models()
        assert orchestrator.start_data_collection()
        await scheduler.advance(10)

    asyncio.run(scenario())

    session_summary = orchestrator.get_session_summary()
    assert session_summary is not None
    assert session_summary.total_frames_processed == 10
    assert session_summary.eye_contact_percentage == 80.0
    assert session_summary.common_expression == "happy"

    results = orchestrator.get_cycle_results()
    assert len(results) == 1
    cycle = results[0]
    assert cycle.cycle_number == 1
    assert cycle.tick_count == 10
    assert (cycle.start_time, cycle.end_time) == (0.0, 10.0)
    assert cycle.summary.eye_contact_rate == pytest.approx(0.8)
    assert cycle.summary.speaking_score == pytest.approx(0.6)
    assert cycle.summary.filler_words.total == 10

    status = orchestrator.get_current_status()
    assert status.state is OrchestratorState.COLLECTING
    assert status.current_cycle == 2
    assert status.total_cycles == 1


def test_stop_cancels_timers_and_discards_partial_cycle() -> None:
    orchestrator, scheduler = _orchestrator()

    async def scenario() -> None:
        orchestrator.start_models()
        orchestrator.start_data_collection()
        assert scheduler.active_timers == 2
        await scheduler.advance(3)
        assert orchestrator.stop_data_collection()
        assert scheduler.active_timers == 0
        await scheduler.advance(20)

    asyncio.run(scenario())

    assert orchestrator.state is OrchestratorState.MODELS_RUNNING
    assert orchestrator.get_cycle_results() == []
    assert orchestrator.get_current_status().frames_processed == 3


def test_stop_can_finalize_partial_cycle() -> None:
    orchestrator, scheduler = _orchestrator()

    async def scenario() -> None:
        orchestrator.start_models()
        orchestrator.start_data_collection()
        await scheduler.advance(3)
        orchestrator.stop_data_collection(finalize_partial=True)

    asyncio.run(scenario())

    results = orchestrator.get_cycle_results()
    assert len(results) == 1
    assert results[0].partial is True
    assert results[0].tick_count == 3
    assert results[0].end_time == 3.0


def test_end_interview_cancels_everything() -> None:
    orchestrator, scheduler = _orchestrator()

    async def scenario() -> None:
        orchestrator.start_models()
        orchestrator.start_data_collection()
        await scheduler.advance(12)
        assert orchestrator.end_interview()
        assert scheduler.active_timers == 0
        await scheduler.advance(30)

    asyncio.run(scenario())

    status = orchestrator.get_current_status()
    assert status.state is OrchestratorState.ENDED
    assert status.is_running is False
    assert status.is_collecting is False
    assert status.frames_processed == 12
    assert status.session_duration == pytest.approx(12.0)
    assert len(orchestrator.get_cycle_results()) == 1


def test_invalid_transitions_return_failure() -> None:
    orchestrator, _ = _orchestrator()

    async def scenario() -> None:
        result = orchestrator.start_data_collection()
        assert not result
        assert result.success is False
        assert result.message

        assert orchestrator.stop_data_collection().success is False
        assert orchestrator.start_models().success is True
        assert orchestrator.start_models().success is False
        assert orchestrator.start_data_collection().success is True
        assert orchestrator.start_data_collection().success is False
        assert orchestrator.start_models().success is False

        orchestrator.end_interview()
        assert orchestrator.start_data_collection().success is False
        assert orchestrator.start_models().success is True

    asyncio.run(scenario())
    assert orchestrator.state is OrchestratorState.MODELS_RUNNING


def test_start_models_resets_session() -> None:
    orchestrator, scheduler = _orchestrator()

    async def scenario() -> None:
        orchestrator.start_models()
        orchestrator.start_data_collection()
        await scheduler.advance(10)
        orchestrator.end_interview()
        orchestrator.start_models()

    asyncio.run(scenario())

    assert orchestrator.get_cycle_results() == []
    assert orchestrator.get_current_status().frames_processed == 0


def test_classifier_timeout_becomes_unknown_sample(caplog: pytest.LogCaptureFixture) -> None:
    config = AppConfig(classifier_timeout_seconds=0.01)
    orchestrator, scheduler = _orchestrator(ScriptedClassifier([_classification()], delay=0.5), config=config)

    async def scenario() -> None:
        orchestrator.start_models()
        orchestrator.start_data_collection()
        with caplog.at_level(logging.WARNING):
            await scheduler.advance(1)

    asyncio.run(scenario())

    summary = orchestrator.get_session_summary()
    assert summary is not None
    assert summary.total_frames_processed == 1
    assert summary.unknown_frame_count == 1
    assert summary.expression_distribution == {}
    assert orchestrator.state is OrchestratorState.COLLECTING
    assert "超时" in caplog.text


def test_overlapping_tick_is_dropped() -> None:
    config = AppConfig(classifier_timeout_seconds=5.0)
    scheduler = ManualScheduler(settle_timeout=0.01)
    classifier = ScriptedClassifier([_classification()], delay=0.3)
    orchestrator, _ = _orchestrator(classifier, config=config, scheduler=scheduler)

    async def scenario() -> None:
        orchestrator.start_models()
        orchestrator.start_data_collection()
        await scheduler.advance(2)
        assert orchestrator.get_current_status().dropped_ticks == 1
        orchestrator.end_interview()
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert orchestrator.get_current_status().frames_processed == 0
    assert classifier.calls == 0


def test_unexpected_tick_error_moves_to_stopped() -> None:
    def broken_source() -> None:
        raise RuntimeError("camera gone")

    orchestrator, scheduler = _orchestrator(frame_source=broken_source)

    async def scenario() -> None:
        orchestrator.start_models()
        orchestrator.start_data_collection()
        await scheduler.advance(1)
        assert scheduler.active_timers == 0
        await scheduler.advance(5)

    asyncio.run(scenario())

    status = orchestrator.get_current_status()
    assert status.state is OrchestratorState.STOPPED
    assert status.is_running is False
    assert orchestrator.start_data_collection().success is False
    assert orchestrator.start_models().success is True


def test_skip_factor_adapts_during_collection() -> None:
    config = AppConfig(initial_skip_factor=2)
    orchestrator, scheduler = _orchestrator(config=config)

    async def scenario() -> None:
        orchestrator.start_models()
        assert orchestrator.get_current_status().skip_factor == 2
        orchestrator.start_data_collection()
        await scheduler.advance(1)

    asyncio.run(scenario())

    # 手动时钟下分析耗时为 0，低于下界，跳帧因子回落
    status = orchestrator.get_current_status()
    assert status.skip_factor == 1
    assert status.frames_offered == 1
    assert status.frames_skipped == 0
    assert status.last_latency_ms == 0.0


def test_recent_results_and_analysis_summary() -> None:
    orchestrator, scheduler = _orchestrator()

    async def scenario() -> None:
        orchestrator.start_models()
        orchestrator.start_data_collection()
        await scheduler.advance(30)

    asyncio.run(scenario())

    assert [r.cycle_number for r in orchestrator.get_recent_results(2)] == [2, 3]
    assert orchestrator.get_recent_results(0) == []
    assert len(orchestrator.get_recent_results()) == 3

    summary = orchestrator.get_analysis_summary()
    assert summary is not None
    assert summary.total_cycles == 3
    assert summary.last_cycle.cycle_number == 3
    assert summary.eye_contact_rate == pytest.approx(1.0)

    speaking = orchestrator.get_speaking_summary()
    assert speaking is not None
    assert speaking.samples_analyzed == 30
    assert speaking.total_filler_words == 5


def test_status_reports_sampler_counters() -> None:
    config = AppConfig(initial_skip_factor=3)
    orchestrator, scheduler = _orchestrator(config=config)

    async def scenario() -> None:
        orchestrator.start_models()
        before = orchestrator.get_current_status()
        assert (before.frames_offered, before.frames_skipped, before.last_latency_ms) == (0, 0, None)
        orchestrator.start_data_collection()
        await scheduler.advance(3)

    asyncio.run(scenario())

    status = orchestrator.get_current_status()
    assert status.frames_offered == 3
    assert status.frames_skipped == 1
    assert status.frames_processed == 2
    assert status.skip_factor == 1
    assert status.to_dict()["sampler"] == {
        "framesOffered": 3,
        "framesSkipped": 1,
        "lastLatencyMs": 0.0,
    }


class BlockingClassifier(FrameClassifier):
    """在线程池中阻塞执行的分类器，记录同时运行的调用数。"""

    def __init__(self, seconds: float) -> None:
        self._seconds = seconds
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls = 0

    def _run(self) -> FrameClassification:
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self._seconds)
        finally:
            with self._lock:
                self.active -= 1
        return _classification()

    async def analyze(self, frame: Any) -> FrameClassification:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._run)


def test_timed_out_classification_blocks_new_passes_until_finished() -> None:
    config = AppConfig(
        classifier_timeout_seconds=0.05,
        tick_interval_seconds=0.1,
        cycle_duration_seconds=60.0,
    )
    classifier = BlockingClassifier(seconds=0.35)
    orchestrator = CycleOrchestrator(
        classifier=classifier,
        speaking=FixedSpeaking(),
        config=config,
        scheduler=AsyncioScheduler(),
    )

    async def scenario() -> None:
        orchestrator.start_models()
        orchestrator.start_data_collection()
        await asyncio.sleep(1.0)
        status = orchestrator.get_current_status()
        orchestrator.end_interview()
        assert status.dropped_ticks > 0
        assert status.frames_processed >= 2
        # 等待最后一次线程池推理结束
        await asyncio.sleep(0.4)

    asyncio.run(scenario())

    assert classifier.calls >= 2
    assert classifier.max_active == 1
    summary = orchestrator.get_session_summary()
    assert summary is not None
    assert summary.unknown_frame_count == summary.total_frames_processed
