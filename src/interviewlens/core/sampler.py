"""根据单次分析耗时自适应调整采样间隔。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SamplerSnapshot:
    skip_factor: int
    last_latency_ms: Optional[float]
    frames_offered: int
    frames_skipped: int


class AdaptiveSampler:
    """跳帧因子 N 的反馈控制器。

    耗时高于上界时 N 加一（最多 max_skip），低于下界且 N > 1 时减一，
    两者之间为死区，不做调整以免振荡。帧入口只分析每第 N 帧。
    """

    def __init__(
        self,
        initial_skip: int = 1,
        max_skip: int = 10,
        upper_bound_ms: float = 50.0,
        lower_bound_ms: float = 30.0,
    ) -> None:
        if not 1 <= initial_skip <= max_skip:
            raise ValueError("初始跳帧因子必须位于 [1, max_skip] 区间")
        if lower_bound_ms >= upper_bound_ms:
            raise ValueError("耗时下界必须小于上界")
        self._skip = initial_skip
        self._max_skip = max_skip
        self._upper = upper_bound_ms
        self._lower = lower_bound_ms
        self._last_latency_ms: Optional[float] = None
        self._pending_skips = 0
        self._frames_offered = 0
        self._frames_skipped = 0

    @property
    def skip_factor(self) -> int:
        return self._skip

    @property
    def last_latency_ms(self) -> Optional[float]:
        return self._last_latency_ms

    def should_process(self) -> bool:
        """判断当前到达的帧是否进入完整分析流程。"""

        self._frames_offered += 1
        if self._pending_skips > 0:
            self._pending_skips -= 1
            self._frames_skipped += 1
            return False
        self._pending_skips = self._skip - 1
        return True

    def record_latency(self, latency_ms: float) -> int:
        """记录一次完整分析的耗时并返回调整后的跳帧因子。"""

        self._last_latency_ms = latency_ms
        previous = self._skip
        if latency_ms > self._upper:
            self._skip = min(self._skip + 1, self._max_skip)
        elif latency_ms < self._lower and self._skip > 1:
            self._skip -= 1

        if self._skip != previous:
            logger.debug("分析耗时 %.1fms，跳帧因子 %d -> %d", latency_ms, previous, self._skip)
            self._pending_skips = max(0, self._pending_skips + self._skip - previous)
        return self._skip

    def snapshot(self) -> SamplerSnapshot:
        return SamplerSnapshot(
            skip_factor=self._skip,
            last_latency_ms=self._last_latency_ms,
            frames_offered=self._frames_offered,
            frames_skipped=self._frames_skipped,
        )
