"""感知模型适配器。"""

from .base import (
    ClassifierGuard,
    FrameClassifier,
    SpeakingGuard,
    SpeakingMetricAdapter,
)
from .speaking import SimulatedSpeakingAdapter, SpeechFeatures, compute_speaking_score

__all__ = [
    "ClassifierGuard",
    "FrameClassifier",
    "SimulatedSpeakingAdapter",
    "SpeakingGuard",
    "SpeakingMetricAdapter",
    "SpeechFeatures",
    "compute_speaking_score",
]
