"""逐帧信号的时间平滑：类别标签加权投票与二值事件置信度累积。"""

from __future__ import annotations

import abc
import collections
from enum import Enum
from typing import Deque, Dict, Generic, Iterator, Optional, Tuple, TypeVar, Union

from interviewlens.config import AppConfig
from interviewlens.core.models import LabelReading, PhoneDetection

T = TypeVar("T")


class SmoothingWindow(Generic[T]):
    """定长 FIFO 缓冲区，超过容量时淘汰最旧的条目。"""

    def __init__(self, size: int = 3) -> None:
        if size < 1:
            raise ValueError("平滑窗口长度至少为 1")
        self._entries: Deque[T] = collections.deque(maxlen=size)

    @property
    def size(self) -> int:
        return self._entries.maxlen or 0

    def push(self, entry: T) -> None:
        self._entries.append(entry)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._entries))


class SmootherKind(Enum):
    CATEGORICAL = "categorical"
    BINARY = "binary"


class SignalSmoother(abc.ABC):
    """单一模态的平滑策略接口。"""

    kind: SmootherKind

    @abc.abstractmethod
    def update(self, reading):  # type: ignore[no-untyped-def]
        """推入一条原始读数并返回平滑后的值。"""

    @abc.abstractmethod
    def reset(self) -> None:
        """清空窗口与稳定值。"""


class CategoricalSmoother(SignalSmoother):
    """带迟滞的加权投票平滑。

    窗口内每条读数的置信度乘以线性递增的新近权重 (index + 1)，按标签累加。
    得分最高的候选标签只有在超过当前稳定标签得分的 `hysteresis_margin` 倍时
    才会替换稳定标签，单帧噪声不会翻转对外报告的状态。并列时取最先插入的标签。
    """

    kind = SmootherKind.CATEGORICAL

    def __init__(self, window_size: int = 3, hysteresis_margin: float = 1.2) -> None:
        if hysteresis_margin < 1.0:
            raise ValueError("迟滞系数不能小于 1.0")
        self._window: SmoothingWindow[Tuple[str, float]] = SmoothingWindow(window_size)
        self._margin = hysteresis_margin
        self._stable: Optional[str] = None

    @property
    def stable(self) -> Optional[str]:
        return self._stable

    @property
    def window(self) -> SmoothingWindow[Tuple[str, float]]:
        return self._window

    def weighted_sums(self) -> Dict[str, float]:
        sums: Dict[str, float] = {}
        for index, (label, confidence) in enumerate(self._window):
            sums[label] = sums.get(label, 0.0) + confidence * (index + 1)
        return sums

    def update(self, reading: LabelReading) -> str:
        self._window.push((reading.label, float(reading.confidence)))

        if len(self._window) < 2:
            if self._stable is None:
                self._stable = reading.label
            return self._stable

        sums = self.weighted_sums()
        # max 在并列时返回第一个遇到的键，即最先插入的标签
        candidate = max(sums, key=sums.__getitem__)
        if self._stable is None:
            self._stable = candidate
        elif candidate != self._stable:
            if sums[candidate] > sums.get(self._stable, 0.0) * self._margin:
                self._stable = candidate
        return self._stable

    def reset(self) -> None:
        self._window.clear()
        self._stable = None


class BinarySmoother(SignalSmoother):
    """二值事件去抖：窗口内命中条目的置信度之和超过阈值才视为激活。"""

    kind = SmootherKind.BINARY

    def __init__(self, window_size: int = 3, threshold: float = 1.0) -> None:
        self._window: SmoothingWindow[Tuple[bool, float]] = SmoothingWindow(window_size)
        self._threshold = threshold
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def window(self) -> SmoothingWindow[Tuple[bool, float]]:
        return self._window

    def accumulated_confidence(self) -> float:
        return sum(confidence for present, confidence in self._window if present)

    def update(self, reading: PhoneDetection) -> bool:
        self._window.push((bool(reading.present), float(reading.confidence)))
        self._active = self.accumulated_confidence() > self._threshold
        return self._active

    def reset(self) -> None:
        self._window.clear()
        self._active = False


AnySmoother = Union[CategoricalSmoother, BinarySmoother]


def create_smoother(kind: SmootherKind, window_size: int, config: Optional[AppConfig] = None) -> AnySmoother:
    """按模态类型构造平滑策略。"""

    config = config or AppConfig.load_default()
    if kind is SmootherKind.CATEGORICAL:
        return CategoricalSmoother(window_size=window_size, hysteresis_margin=config.hysteresis_margin)
    if kind is SmootherKind.BINARY:
        return BinarySmoother(window_size=window_size, threshold=config.phone_detection_threshold)
    raise ValueError(f"不支持的平滑类型: {kind}")
