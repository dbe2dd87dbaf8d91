"""面试分析周期编排：模型启动、数据采集、周期汇总与结束。"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from interviewlens.adapters.base import (
    ClassifierGuard,
    FrameClassifier,
    SpeakingGuard,
    SpeakingMetricAdapter,
)
from interviewlens.config import AppConfig
from interviewlens.core.aggregator import Cycle, summarize_cycles
from interviewlens.core.models import (
    AnalysisSummary,
    CycleResult,
    FrameSample,
    LabelReading,
    SessionSummary,
    SmoothedFrame,
    SpeakingSummary,
)
from interviewlens.core.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from interviewlens.core.session import AnalysisSession

logger = logging.getLogger(__name__)

FrameSource = Callable[[], Any]


class OrchestratorState(Enum):
    IDLE = "idle"
    MODELS_RUNNING = "models_running"
    COLLECTING = "collecting"
    STOPPED = "stopped"
    ENDED = "ended"


@dataclass(frozen=True)
class TransitionResult:
    success: bool
    message: str

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message}


@dataclass(frozen=True)
class OrchestratorStatus:
    state: OrchestratorState
    is_running: bool
    is_collecting: bool
    current_cycle: Optional[int]
    total_cycles: int
    session_duration: float
    skip_factor: int
    frames_processed: int
    dropped_ticks: int
    frames_offered: int = 0
    frames_skipped: int = 0
    last_latency_ms: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "isRunning": self.is_running,
            "isCollecting": self.is_collecting,
            "currentCycle": self.current_cycle,
            "totalCycles": self.total_cycles,
            "sessionDuration": round(self.session_duration, 2),
            "skipFactor": self.skip_factor,
            "framesProcessed": self.frames_processed,
            "droppedTicks": self.dropped_ticks,
            "sampler": {
                "framesOffered": self.frames_offered,
                "framesSkipped": self.frames_skipped,
                "lastLatencyMs": round(self.last_latency_ms, 2) if self.last_latency_ms is not None else None,
            },
        }


class CycleOrchestrator:
    """面试分析的状态机。

    采集期间由两个定时器驱动：每个 tick 执行一次带超时保护的分类与语音采样，
    周期定时器到期时汇总当前周期并开启新周期。上一个 tick 尚未完成时新 tick
    会被直接丢弃并计数，不会排队。所有离开采集状态的路径都会取消两个定时器。
    """

    def __init__(
        self,
        classifier: FrameClassifier,
        speaking: Optional[SpeakingMetricAdapter] = None,
        frame_source: Optional[FrameSource] = None,
        config: Optional[AppConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._config = config or AppConfig.load_default()
        self._scheduler = scheduler or AsyncioScheduler()
        self._classifier = classifier
        self._classifier_guard = ClassifierGuard(classifier, timeout=self._config.classifier_timeout_seconds)
        self._speaking_guard = SpeakingGuard(speaking, timeout=self._config.speaking_timeout_seconds)
        self._frame_source: FrameSource = frame_source or (lambda: None)

        self._state = OrchestratorState.IDLE
        self._session: Optional[AnalysisSession] = None
        self._cycle: Optional[Cycle] = None
        self._cycle_counter = 0
        self._results: List[CycleResult] = []
        self._ended_at: Optional[float] = None

        self._tick_timer: Optional[TimerHandle] = None
        self._cycle_timer: Optional[TimerHandle] = None
        self._tick_task: Optional["asyncio.Task[None]"] = None
        self._dropped_ticks = 0

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def classifier(self) -> FrameClassifier:
        return self._classifier

    @property
    def session(self) -> Optional[AnalysisSession]:
        return self._session

    # ------------------------------------------------------------------
    # 状态迁移
    # ------------------------------------------------------------------
    def start_models(self) -> TransitionResult:
        if self._state in (OrchestratorState.MODELS_RUNNING, OrchestratorState.COLLECTING):
            return self._reject("模型已在运行")

        now = self._scheduler.now()
        self._session = AnalysisSession(started_at=now, config=self._config)
        self._results = []
        self._cycle = None
        self._cycle_counter = 0
        self._dropped_ticks = 0
        self._ended_at = None
        self._state = OrchestratorState.MODELS_RUNNING
        logger.info("感知模型已启动，新会话开始")
        return TransitionResult(True, "模型已启动")

    def start_data_collection(self) -> TransitionResult:
        if self._state is OrchestratorState.COLLECTING:
            return self._reject("数据采集已在进行中")
        if self._state is not OrchestratorState.MODELS_RUNNING:
            return self._reject("模型尚未启动，请先调用 start_models")

        self._begin_cycle()
        # tick 先注册，同一时刻到期时先于周期定时器执行
        self._tick_timer = self._scheduler.call_every(self._config.tick_interval_seconds, self._on_tick)
        self._cycle_timer = self._scheduler.call_every(self._config.cycle_duration_seconds, self._on_cycle_timer)
        self._state = OrchestratorState.COLLECTING
        logger.info(
            "开始数据采集：tick 间隔 %.1fs，周期 %.1fs",
            self._config.tick_interval_seconds,
            self._config.cycle_duration_seconds,
        )
        return TransitionResult(True, "数据采集已开始")

    def stop_data_collection(self, finalize_partial: bool = False) -> TransitionResult:
        """停止采集。`finalize_partial` 为真时把未满的当前周期也记入历史。"""

        if self._state is not OrchestratorState.COLLECTING:
            return self._reject("当前没有进行中的数据采集")

        self._cancel_timers()
        self._cancel_tick_task()
        if finalize_partial and self._cycle is not None and self._cycle.tick_count > 0:
            self._close_cycle(partial=True)
        elif self._cycle is not None:
            logger.info("丢弃未完成的周期 %d（%d 个 tick）", self._cycle.number, self._cycle.tick_count)
        self._cycle = None
        self._state = OrchestratorState.MODELS_RUNNING
        logger.info("数据采集已停止")
        return TransitionResult(True, "数据采集已停止")

    def end_interview(self) -> TransitionResult:
        self._cancel_timers()
        self._cancel_tick_task()
        self._cycle = None
        if self._state is not OrchestratorState.ENDED:
            self._ended_at = self._scheduler.now()
        self._state = OrchestratorState.ENDED
        logger.info("面试结束，共完成 %d 个周期", len(self._results))
        return TransitionResult(True, "面试已结束")

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------
    def get_current_status(self) -> OrchestratorStatus:
        session = self._session
        sampler = session.sampler.snapshot() if session is not None else None
        return OrchestratorStatus(
            state=self._state,
            is_running=self._state in (OrchestratorState.MODELS_RUNNING, OrchestratorState.COLLECTING),
            is_collecting=self._state is OrchestratorState.COLLECTING,
            current_cycle=self._cycle.number if self._cycle is not None else None,
            total_cycles=len(self._results),
            session_duration=self._session_duration(),
            skip_factor=sampler.skip_factor if sampler is not None else self._config.initial_skip_factor,
            frames_processed=session.frames_processed if session is not None else 0,
            dropped_ticks=self._dropped_ticks,
            frames_offered=sampler.frames_offered if sampler is not None else 0,
            frames_skipped=sampler.frames_skipped if sampler is not None else 0,
            last_latency_ms=sampler.last_latency_ms if sampler is not None else None,
        )

    def get_cycle_results(self) -> List[CycleResult]:
        return list(self._results)

    def get_recent_results(self, limit: Optional[int] = None) -> List[CycleResult]:
        if limit is None:
            limit = self._config.recent_results_limit
        if limit <= 0:
            return []
        return self._results[-limit:]

    def get_analysis_summary(self) -> Optional[AnalysisSummary]:
        return summarize_cycles(self._results, self._session_duration())

    def get_session_summary(self) -> Optional[SessionSummary]:
        if self._session is None:
            return None
        return self._session.summary(self._reference_time())

    def get_speaking_summary(self) -> Optional[SpeakingSummary]:
        if self._session is None:
            return None
        return self._session.speaking_summary()

    # ------------------------------------------------------------------
    # tick 与周期处理
    # ------------------------------------------------------------------
    async def run_tick(self) -> Optional[SmoothedFrame]:
        """执行一次完整的采样：分类、语音、平滑、计数并写入当前周期。"""

        session = self._session
        if session is None or self._cycle is None:
            return None
        if self._classifier_guard.busy:
            return None
        if not session.sampler.should_process():
            return None

        frame = self._frame_source()
        started = self._scheduler.now()
        classification = await self._classifier_guard.classify(frame)
        session.sampler.record_latency((self._scheduler.now() - started) * 1000)

        speaking = await self._speaking_guard.sample()
        if speaking is not None:
            session.record_speaking(speaking)

        # 等待期间周期可能已经轮换，以当前周期为准
        cycle = self._cycle
        if cycle is None:
            return None

        timestamp = self._scheduler.now()
        frame_index = session.next_frame_index
        if classification is None:
            sample = FrameSample.unknown(timestamp, frame_index)
        else:
            sample = FrameSample.from_classification(classification, timestamp, frame_index)
        smoothed = session.ingest(sample)

        if smoothed.failed:
            cycle.add_tick(None, None, False, speaking)
        else:
            cycle.add_tick(
                LabelReading(smoothed.expression, smoothed.expression_confidence),
                LabelReading(smoothed.posture, smoothed.posture_confidence),
                smoothed.eye_contact,
                speaking,
            )
        return smoothed

    def _on_tick(self) -> None:
        if self._state is not OrchestratorState.COLLECTING:
            return
        if self._tick_task is not None and not self._tick_task.done():
            self._drop_tick("上一个 tick 仍在处理")
            return
        if self._classifier_guard.busy:
            self._drop_tick("超时的帧分类仍在执行")
            return
        self._tick_task = self._scheduler.spawn(self._guarded_tick())

    def _drop_tick(self, reason: str) -> None:
        self._dropped_ticks += 1
        logger.warning("%s，丢弃本次 tick（累计 %d 次）", reason, self._dropped_ticks)

    async def _guarded_tick(self) -> None:
        try:
            await self.run_tick()
        except Exception:
            logger.exception("tick 处理出现未预期异常，停止采集")
            self._fail()

    def _on_cycle_timer(self) -> None:
        if self._state is not OrchestratorState.COLLECTING or self._cycle is None:
            return
        self._close_cycle(partial=False)
        self._begin_cycle()

    def _begin_cycle(self) -> None:
        self._cycle_counter += 1
        self._cycle = Cycle(self._cycle_counter, started_at=self._relative_now())
        logger.debug("周期 %d 开始", self._cycle_counter)

    def _close_cycle(self, partial: bool) -> CycleResult:
        assert self._cycle is not None
        result = self._cycle.finalize(ended_at=self._relative_now(), partial=partial)
        self._results.append(result)
        summary = result.summary
        logger.info(
            "周期 %d%s 完成：表情=%s(%.2f) 姿态=%s(%.2f) 语音=%.2f 眼神接触=%.0f%% 综合=%.2f",
            result.cycle_number,
            "（不完整）" if partial else "",
            summary.dominant_expression,
            summary.expression_confidence,
            summary.dominant_posture,
            summary.posture_confidence,
            summary.speaking_score,
            summary.eye_contact_rate * 100,
            summary.overall_confidence,
        )
        return result

    def _fail(self) -> None:
        self._cancel_timers()
        self._cycle = None
        self._state = OrchestratorState.STOPPED

    def _cancel_timers(self) -> None:
        for timer in (self._tick_timer, self._cycle_timer):
            if timer is not None:
                timer.cancel()
        self._tick_timer = None
        self._cycle_timer = None

    def _cancel_tick_task(self) -> None:
        task = self._tick_task
        self._tick_task = None
        if task is not None and not task.done():
            task.cancel()

    def _reject(self, message: str) -> TransitionResult:
        logger.info("状态 %s 下拒绝操作：%s", self._state.value, message)
        return TransitionResult(False, message)

    def _relative_now(self) -> float:
        if self._session is None:
            return 0.0
        return self._scheduler.now() - self._session.started_at

    def _reference_time(self) -> float:
        return self._ended_at if self._ended_at is not None else self._scheduler.now()

    def _session_duration(self) -> float:
        if self._session is None:
            return 0.0
        return max(0.0, self._reference_time() - self._session.started_at)
