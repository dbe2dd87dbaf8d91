"""模拟视觉分类器，用于开发阶段。"""

from __future__ import annotations

import asyncio
import math
import random
from typing import Any, Optional

from interviewlens.adapters.base import FrameClassifier
from interviewlens.core.models import FrameClassification, LabelReading, PhoneDetection

EXPRESSIONS = ("happy", "sad", "angry", "surprised", "neutral", "confused")
POSTURES = ("upright", "slouched", "leaning_forward", "leaning_back")


class SimulatedFrameClassifier(FrameClassifier):
    """生成随机但缓慢变化的分类结果，便于联调数据流。"""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._random = random.Random(seed)
        self._phase = 0.0
        self._expression = "neutral"
        self._posture = "upright"

    async def analyze(self, frame: Any) -> FrameClassification:
        await asyncio.sleep(0)

        # 表情和姿态大多数 tick 保持不变，偶尔跳变
        if self._random.random() < 0.2:
            self._expression = self._random.choice(EXPRESSIONS)
        if self._random.random() < 0.1:
            self._posture = self._random.choice(POSTURES)

        eye_contact_chance = 0.7 + 0.15 * math.sin(self._phase)
        self._phase += 0.3

        has_phone = self._random.random() > 0.9
        phone_confidence = self._random.uniform(0.6, 1.0) if has_phone else 0.0

        return FrameClassification(
            expression=LabelReading(self._expression, self._random.uniform(0.6, 1.0)),
            eye_contact=self._random.random() < eye_contact_chance,
            posture=LabelReading(self._posture, self._random.uniform(0.5, 1.0)),
            phone=PhoneDetection(present=has_phone, confidence=phone_confidence),
        )
