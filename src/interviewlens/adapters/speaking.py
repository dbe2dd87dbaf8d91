"""语音表现评分与模拟语音适配器。"""

from __future__ import annotations

import asyncio
import random
from typing import Optional

from interviewlens.adapters.base import SpeakingMetricAdapter
from interviewlens.core.models import FillerWords, SpeakingMetric, SpeechFeatures

FILLER_PENALTY_PER_WORD = 0.02
MAX_FILLER_PENALTY = 0.2


def compute_speaking_score(features: SpeechFeatures, fillers: FillerWords) -> float:
    """语气、流畅度、咬字三项均值减去口头禅惩罚，下限为 0。

    惩罚只统计 um/uh/like，每个 0.02，最多 0.2。
    """

    base = (features.tone + features.fluency + features.articulation) / 3
    penalty = min(MAX_FILLER_PENALTY, fillers.scored * FILLER_PENALTY_PER_WORD)
    return max(0.0, min(1.0, base - penalty))


class SimulatedSpeakingAdapter(SpeakingMetricAdapter):
    """生成随机但合理的语音指标，便于在没有麦克风时联调。"""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._random = random.Random(seed)

    def _sample(self, base: float, spread: float, jitter: float) -> float:
        value = base + self._random.random() * spread + (self._random.random() - 0.5) * jitter
        return max(0.0, min(1.0, value))

    def sample_features(self) -> SpeechFeatures:
        return SpeechFeatures(
            pitch=self._sample(0.6, 0.3, 0.2),
            volume=self._sample(0.7, 0.2, 0.15),
            clarity=self._sample(0.65, 0.25, 0.1),
            stability=self._sample(0.6, 0.3, 0.15),
            pace=self._sample(0.55, 0.3, 0.2),
            rhythm=self._sample(0.6, 0.25, 0.15),
            flow=self._sample(0.55, 0.3, 0.2),
            pronunciation=self._sample(0.7, 0.2, 0.15),
            enunciation=self._sample(0.65, 0.25, 0.15),
            speed=self._sample(0.6, 0.25, 0.2),
        )

    def sample_fillers(self) -> FillerWords:
        return FillerWords(
            um=self._random.randrange(4),
            uh=self._random.randrange(3),
            like=self._random.randrange(5),
            you_know=self._random.randrange(3),
        )

    async def analyze_speaking_skills(self) -> SpeakingMetric:
        await asyncio.sleep(0)
        features = self.sample_features()
        fillers = self.sample_fillers()
        score = compute_speaking_score(features, fillers)
        return SpeakingMetric(score=score, filler_words=fillers, features=features)
