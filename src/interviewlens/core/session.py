"""单场面试会话：持有平滑窗口、变化日志与计数器。"""

from __future__ import annotations

import collections
import logging
from typing import Deque, List, Optional

from interviewlens.config import AppConfig
from interviewlens.core.aggregator import SessionAggregator, summarize_speaking
from interviewlens.core.change_tracker import StateChangeTracker
from interviewlens.core.models import (
    NEUTRAL_LABEL,
    UNKNOWN_LABEL,
    ChangeEntry,
    FrameSample,
    LabelReading,
    SessionSummary,
    SmoothedFrame,
    SpeakingMetric,
    SpeakingSummary,
)
from interviewlens.core.sampler import AdaptiveSampler
from interviewlens.core.smoothing import SmootherKind, create_smoother

logger = logging.getLogger(__name__)


class AnalysisSession:
    """会话状态的唯一所有者。

    平滑窗口、计数器与变化日志只能通过 `ingest` 与 `record_speaking` 修改，
    由编排器在 `start_models` 时新建。
    """

    def __init__(self, started_at: float, config: Optional[AppConfig] = None) -> None:
        self._config = config or AppConfig.load_default()
        self.started_at = started_at

        self._expression_smoother = create_smoother(
            SmootherKind.CATEGORICAL, self._config.expression_smoothing_window, self._config
        )
        self._posture_smoother = create_smoother(
            SmootherKind.CATEGORICAL, self._config.posture_smoothing_window, self._config
        )
        self._phone_smoother = create_smoother(
            SmootherKind.BINARY, self._config.phone_smoothing_window, self._config
        )

        self._expression_tracker = StateChangeTracker("expression", NEUTRAL_LABEL)
        self._posture_tracker = StateChangeTracker("posture", UNKNOWN_LABEL)
        self._aggregator = SessionAggregator()
        self.sampler = AdaptiveSampler(
            initial_skip=self._config.initial_skip_factor,
            max_skip=self._config.max_skip_factor,
            upper_bound_ms=self._config.latency_upper_bound_ms,
            lower_bound_ms=self._config.latency_lower_bound_ms,
        )

        self._recent_speaking: Deque[SpeakingMetric] = collections.deque(
            maxlen=self._config.speaking_summary_window
        )
        self._speaking_samples = 0

    @property
    def next_frame_index(self) -> int:
        return self._aggregator.frames_processed

    @property
    def frames_processed(self) -> int:
        return self._aggregator.frames_processed

    @property
    def aggregator(self) -> SessionAggregator:
        return self._aggregator

    @property
    def current_expression(self) -> str:
        return self._expression_tracker.current

    @property
    def current_posture(self) -> str:
        return self._posture_tracker.current

    @property
    def expression_changes(self) -> List[ChangeEntry]:
        return self._expression_tracker.changes

    @property
    def posture_changes(self) -> List[ChangeEntry]:
        return self._posture_tracker.changes

    def ingest(self, sample: FrameSample) -> SmoothedFrame:
        """把一帧样本送入平滑、变化追踪与计数流程。"""

        if sample.failed:
            logger.debug("帧 %d 分类失败，记为 unknown", sample.frame_index)
            self._aggregator.record_unknown()
            return SmoothedFrame(
                frame_index=sample.frame_index,
                expression=self.current_expression,
                expression_confidence=0.0,
                posture=self.current_posture,
                posture_confidence=0.0,
                eye_contact=False,
                suspicious=self._phone_smoother.active,
                failed=True,
            )

        expression = sample.expression or LabelReading(self.current_expression, 0.0)
        posture = sample.posture or LabelReading(UNKNOWN_LABEL, 0.0)

        smoothed_expression = self._expression_smoother.update(expression)
        smoothed_posture = self._posture_smoother.update(posture)
        suspicious = self._phone_smoother.update(sample.phone)

        relative = sample.timestamp - self.started_at
        self._expression_tracker.observe(smoothed_expression, relative, sample.frame_index)
        self._posture_tracker.observe(smoothed_posture, relative, sample.frame_index)
        self._aggregator.record(smoothed_expression, smoothed_posture, sample.eye_contact, suspicious)

        return SmoothedFrame(
            frame_index=sample.frame_index,
            expression=smoothed_expression,
            expression_confidence=expression.confidence,
            posture=smoothed_posture,
            posture_confidence=posture.confidence,
            eye_contact=sample.eye_contact,
            suspicious=suspicious,
        )

    def record_speaking(self, metric: SpeakingMetric) -> None:
        self._recent_speaking.append(metric)
        self._speaking_samples += 1

    def summary(self, now: float) -> SessionSummary:
        return self._aggregator.summary(
            elapsed_seconds=max(0.0, now - self.started_at),
            expression_changes=self._expression_tracker.changes,
            posture_changes=self._posture_tracker.changes,
        )

    def speaking_summary(self) -> Optional[SpeakingSummary]:
        return summarize_speaking(self._recent_speaking, self._speaking_samples)
