"""管线中流转的数据结构。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

UNKNOWN_LABEL = "unknown"
NEUTRAL_LABEL = "neutral"


@dataclass(frozen=True)
class LabelReading:
    """分类器给出的单个类别标签及置信度。"""

    label: str
    confidence: float


@dataclass(frozen=True)
class PhoneDetection:
    present: bool = False
    confidence: float = 0.0


@dataclass(frozen=True)
class FrameClassification:
    """分类适配器对一帧的原始输出。

    `expression` 为 None 表示未检测到人脸，会话会沿用当前稳定表情并记置信度 0。
    """

    expression: Optional[LabelReading]
    eye_contact: bool
    posture: Optional[LabelReading]
    phone: PhoneDetection = field(default_factory=PhoneDetection)


@dataclass(frozen=True)
class FrameSample:
    """带时间戳与帧序号的单帧样本，仅在平滑前短暂存在。"""

    timestamp: float
    frame_index: int
    expression: Optional[LabelReading]
    eye_contact: bool
    posture: Optional[LabelReading]
    phone: PhoneDetection = field(default_factory=PhoneDetection)
    failed: bool = False

    @classmethod
    def from_classification(
        cls, classification: FrameClassification, timestamp: float, frame_index: int
    ) -> "FrameSample":
        return cls(
            timestamp=timestamp,
            frame_index=frame_index,
            expression=classification.expression,
            eye_contact=classification.eye_contact,
            posture=classification.posture,
            phone=classification.phone,
        )

    @classmethod
    def unknown(cls, timestamp: float, frame_index: int) -> "FrameSample":
        """分类失败或超时时使用的占位样本。"""

        return cls(
            timestamp=timestamp,
            frame_index=frame_index,
            expression=None,
            eye_contact=False,
            posture=None,
            failed=True,
        )


@dataclass(frozen=True)
class SmoothedFrame:
    """经过平滑后的单帧结果。"""

    frame_index: int
    expression: str
    expression_confidence: float
    posture: str
    posture_confidence: float
    eye_contact: bool
    suspicious: bool
    failed: bool = False


@dataclass(frozen=True)
class FillerWords:
    um: int = 0
    uh: int = 0
    like: int = 0
    you_know: int = 0

    @property
    def total(self) -> int:
        return self.um + self.uh + self.like + self.you_know

    @property
    def scored(self) -> int:
        """计入语音扣分与汇总的口头禅数，不含 you_know。"""

        return self.um + self.uh + self.like

    def __add__(self, other: "FillerWords") -> "FillerWords":
        return FillerWords(
            um=self.um + other.um,
            uh=self.uh + other.uh,
            like=self.like + other.like,
            you_know=self.you_know + other.you_know,
        )

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "breakdown": {
                "um": self.um,
                "uh": self.uh,
                "like": self.like,
                "youKnow": self.you_know,
            },
        }


@dataclass(frozen=True)
class SpeechFeatures:
    """语音子指标，均归一化到 0..1。"""

    pitch: float
    volume: float
    clarity: float
    stability: float
    pace: float
    rhythm: float
    flow: float
    pronunciation: float
    enunciation: float
    speed: float

    @property
    def tone(self) -> float:
        return (self.pitch + self.volume + self.clarity + self.stability) / 4

    @property
    def fluency(self) -> float:
        return (self.pace + self.rhythm + self.flow) / 3

    @property
    def articulation(self) -> float:
        return (self.pronunciation + self.enunciation + self.speed) / 3


@dataclass(frozen=True)
class SpeakingMetric:
    """语音适配器每个 tick 的采样结果，score 归一化到 0..1。

    features 为可选的子指标明细，提供时参与语气、流畅度、咬字的汇总均值。
    """

    score: float
    filler_words: FillerWords = field(default_factory=FillerWords)
    features: Optional[SpeechFeatures] = None


@dataclass(frozen=True)
class ChangeEntry:
    timestamp: float
    frame_index: int
    from_label: str
    to_label: str

    def to_dict(self) -> dict:
        return {
            "timestamp": round(self.timestamp, 3),
            "frame": self.frame_index,
            "from": self.from_label,
            "to": self.to_label,
        }


@dataclass(frozen=True)
class CycleSummary:
    dominant_expression: str
    expression_confidence: float
    dominant_posture: str
    posture_confidence: float
    speaking_score: float
    eye_contact_rate: float
    overall_confidence: float
    filler_words: FillerWords

    def to_dict(self) -> dict:
        return {
            "dominantExpression": self.dominant_expression,
            "expressionConfidence": self.expression_confidence,
            "dominantPosture": self.dominant_posture,
            "postureConfidence": self.posture_confidence,
            "speakingScore": self.speaking_score,
            "eyeContactRate": self.eye_contact_rate,
            "overallConfidence": self.overall_confidence,
            "fillerWords": self.filler_words.to_dict(),
        }


@dataclass(frozen=True)
class CycleResult:
    """已结束周期的记录，追加到周期历史后不再修改。"""

    cycle_number: int
    start_time: float
    end_time: float
    tick_count: int
    summary: CycleSummary
    partial: bool = False

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def to_dict(self) -> dict:
        return {
            "cycleNumber": self.cycle_number,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": round(self.duration, 3),
            "tickCount": self.tick_count,
            "partial": self.partial,
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class SessionSummary:
    duration: float
    total_frames_processed: int
    average_processing_time_per_frame: float
    eye_contact_percentage: float
    common_expression: str
    expression_distribution: Dict[str, float]
    expression_changes: List[ChangeEntry]
    common_posture: str
    posture_distribution: Dict[str, float]
    posture_changes: List[ChangeEntry]
    suspicious_percentage: float
    suspicious_event_count: int
    unknown_frame_count: int = 0
    insights: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "duration": self.duration,
            "totalFramesProcessed": self.total_frames_processed,
            "averageProcessingTimePerFrame": self.average_processing_time_per_frame,
            "eyeContactPercentage": self.eye_contact_percentage,
            "commonExpression": self.common_expression,
            "expressionDistribution": dict(self.expression_distribution),
            "expressionChanges": [entry.to_dict() for entry in self.expression_changes],
            "commonPosture": self.common_posture,
            "postureDistribution": dict(self.posture_distribution),
            "postureChanges": [entry.to_dict() for entry in self.posture_changes],
            "suspiciousPercentage": self.suspicious_percentage,
            "suspiciousEventCount": self.suspicious_event_count,
            "unknownFrameCount": self.unknown_frame_count,
            "insights": list(self.insights),
        }


@dataclass(frozen=True)
class AnalysisSummary:
    """跨周期的平均指标。"""

    total_cycles: int
    session_duration: float
    expression_confidence: float
    posture_confidence: float
    speaking_score: float
    eye_contact_rate: float
    last_cycle: CycleResult

    def to_dict(self) -> dict:
        return {
            "totalCycles": self.total_cycles,
            "sessionDuration": self.session_duration,
            "averages": {
                "expressionConfidence": self.expression_confidence,
                "postureConfidence": self.posture_confidence,
                "speakingScore": self.speaking_score,
                "eyeContactRate": self.eye_contact_rate,
            },
            "lastCycle": self.last_cycle.to_dict(),
        }


@dataclass(frozen=True)
class SpeakingSummary:
    average_score: float
    total_filler_words: int
    samples_analyzed: int
    average_tone: Optional[float] = None
    average_fluency: Optional[float] = None
    average_articulation: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "averageScore": self.average_score,
            "averageTone": self.average_tone,
            "averageFluency": self.average_fluency,
            "averageArticulation": self.average_articulation,
            "totalFillerWords": self.total_filler_words,
            "samplesAnalyzed": self.samples_analyzed,
        }
