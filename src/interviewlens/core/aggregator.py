"""会话级计数与周期汇总。"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from interviewlens.core.models import (
    NEUTRAL_LABEL,
    UNKNOWN_LABEL,
    AnalysisSummary,
    ChangeEntry,
    CycleResult,
    CycleSummary,
    FillerWords,
    LabelReading,
    SessionSummary,
    SpeakingMetric,
    SpeakingSummary,
)

# 会话总结附带的固定建议
SESSION_INSIGHTS = [
    "眼神接触越稳定越显得投入，尽量保持在 80% 以上。",
    "开心等积极表情显得热情，适当穿插平和的表情会更自然。",
    "持续端正的坐姿显得专业，减少弯腰驼背能让状态更饱满。",
    "可疑行为越少干扰越小，面试时请把手机放在视线之外。",
    "如果手机检测失效，请改善光线并尽量保持背景简洁。",
]


def dominant_label(counts: Mapping[str, int], default: str) -> str:
    """返回出现次数最多的标签，并列时取计数结构中最先插入的标签。"""

    best: Optional[str] = None
    best_count = 0
    for label, count in counts.items():
        if best is None or count > best_count:
            best = label
            best_count = count
    return default if best is None else best


def distribution(counts: Mapping[str, int], total: int) -> Dict[str, float]:
    if total <= 0:
        return {}
    return {label: count / total * 100 for label, count in counts.items()}


def _percentage(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return count / total * 100


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


class SessionAggregator:
    """增量维护整场会话的计数器。

    失败帧计入 frames_processed 与 unknown_frames，但不计入任何标签，
    因此始终满足 sum(标签计数) + unknown_frames == frames_processed。
    """

    def __init__(self) -> None:
        self._expression_counts: Dict[str, int] = {}
        self._posture_counts: Dict[str, int] = {}
        self._eye_contact_count = 0
        self._suspicious_count = 0
        self._frames_processed = 0
        self._unknown_frames = 0

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    @property
    def unknown_frames(self) -> int:
        return self._unknown_frames

    @property
    def eye_contact_count(self) -> int:
        return self._eye_contact_count

    @property
    def suspicious_count(self) -> int:
        return self._suspicious_count

    @property
    def expression_counts(self) -> Dict[str, int]:
        return dict(self._expression_counts)

    @property
    def posture_counts(self) -> Dict[str, int]:
        return dict(self._posture_counts)

    def record(self, expression: str, posture: str, eye_contact: bool, suspicious: bool) -> None:
        self._frames_processed += 1
        self._expression_counts[expression] = self._expression_counts.get(expression, 0) + 1
        self._posture_counts[posture] = self._posture_counts.get(posture, 0) + 1
        if eye_contact:
            self._eye_contact_count += 1
        if suspicious:
            self._suspicious_count += 1

    def record_unknown(self) -> None:
        self._frames_processed += 1
        self._unknown_frames += 1

    def summary(
        self,
        elapsed_seconds: float,
        expression_changes: List[ChangeEntry],
        posture_changes: List[ChangeEntry],
    ) -> SessionSummary:
        frames = self._frames_processed
        average_ms = (elapsed_seconds / frames) * 1000 if frames > 0 else 0.0
        return SessionSummary(
            duration=round(elapsed_seconds, 2),
            total_frames_processed=frames,
            average_processing_time_per_frame=round(average_ms, 2),
            eye_contact_percentage=round(_percentage(self._eye_contact_count, frames), 2),
            common_expression=dominant_label(self._expression_counts, default="none"),
            expression_distribution=distribution(self._expression_counts, frames),
            expression_changes=list(expression_changes),
            common_posture=dominant_label(self._posture_counts, default="none"),
            posture_distribution=distribution(self._posture_counts, frames),
            posture_changes=list(posture_changes),
            suspicious_percentage=round(_percentage(self._suspicious_count, frames), 2),
            suspicious_event_count=self._suspicious_count,
            unknown_frame_count=self._unknown_frames,
            insights=list(SESSION_INSIGHTS),
        )


class Cycle:
    """固定时长的聚合窗口，保存每个 tick 的原始指标。"""

    def __init__(self, number: int, started_at: float) -> None:
        self.number = number
        self.started_at = started_at
        self._expressions: List[LabelReading] = []
        self._postures: List[LabelReading] = []
        self._eye_contact: List[bool] = []
        self._speaking: List[Optional[SpeakingMetric]] = []

    @property
    def tick_count(self) -> int:
        return len(self._eye_contact)

    def add_tick(
        self,
        expression: Optional[LabelReading],
        posture: Optional[LabelReading],
        eye_contact: bool,
        speaking: Optional[SpeakingMetric],
    ) -> None:
        """记录一个 tick；失败帧的表情和姿态传 None，不参与标签统计。"""

        if expression is not None:
            self._expressions.append(expression)
        if posture is not None:
            self._postures.append(posture)
        self._eye_contact.append(bool(eye_contact))
        self._speaking.append(speaking)

    def summarize(self) -> CycleSummary:
        expression_counts: Dict[str, int] = {}
        for reading in self._expressions:
            expression_counts[reading.label] = expression_counts.get(reading.label, 0) + 1
        posture_counts: Dict[str, int] = {}
        for reading in self._postures:
            posture_counts[reading.label] = posture_counts.get(reading.label, 0) + 1

        expression_confidence = _clamp(_mean([r.confidence for r in self._expressions]))
        posture_confidence = _clamp(_mean([r.confidence for r in self._postures]))

        ticks = self.tick_count
        # 缺失的语音样本按 0 计入平均
        speaking_total = sum(metric.score for metric in self._speaking if metric is not None)
        speaking_score = _clamp(speaking_total / ticks) if ticks else 0.0
        eye_contact_rate = (sum(1 for hit in self._eye_contact if hit) / ticks) if ticks else 0.0

        filler_words = FillerWords()
        for metric in self._speaking:
            if metric is not None:
                filler_words = filler_words + metric.filler_words

        overall = (expression_confidence + posture_confidence + speaking_score + eye_contact_rate) / 4

        return CycleSummary(
            dominant_expression=dominant_label(expression_counts, default=NEUTRAL_LABEL),
            expression_confidence=expression_confidence,
            dominant_posture=dominant_label(posture_counts, default=UNKNOWN_LABEL),
            posture_confidence=posture_confidence,
            speaking_score=speaking_score,
            eye_contact_rate=eye_contact_rate,
            overall_confidence=overall,
            filler_words=filler_words,
        )

    def finalize(self, ended_at: float, partial: bool = False) -> CycleResult:
        return CycleResult(
            cycle_number=self.number,
            start_time=self.started_at,
            end_time=ended_at,
            tick_count=self.tick_count,
            summary=self.summarize(),
            partial=partial,
        )


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def summarize_cycles(results: Sequence[CycleResult], session_duration: float) -> Optional[AnalysisSummary]:
    """计算所有已完成周期的平均指标，尚无周期时返回 None。"""

    if not results:
        return None

    summaries = [result.summary for result in results]
    return AnalysisSummary(
        total_cycles=len(results),
        session_duration=session_duration,
        expression_confidence=_mean([s.expression_confidence for s in summaries]),
        posture_confidence=_mean([s.posture_confidence for s in summaries]),
        speaking_score=_mean([s.speaking_score for s in summaries]),
        eye_contact_rate=_mean([s.eye_contact_rate for s in summaries]),
        last_cycle=results[-1],
    )


def summarize_speaking(recent: Iterable[SpeakingMetric], samples_analyzed: int) -> Optional[SpeakingSummary]:
    """最近若干次语音采样的均值汇总。

    口头禅只累计 um/uh/like；语气等子指标只对携带明细的采样求均值，
    全部缺失时为 None。
    """

    metrics = list(recent)
    if not metrics:
        return None
    features = [metric.features for metric in metrics if metric.features is not None]
    return SpeakingSummary(
        average_score=_mean([metric.score for metric in metrics]),
        total_filler_words=sum(metric.filler_words.scored for metric in metrics),
        samples_analyzed=samples_analyzed,
        average_tone=_mean([f.tone for f in features]) if features else None,
        average_fluency=_mean([f.fluency for f in features]) if features else None,
        average_articulation=_mean([f.articulation for f in features]) if features else None,
    )
