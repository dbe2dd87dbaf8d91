"""感知模型适配器基类与超时保护。"""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any, Optional

from interviewlens.core.models import FrameClassification, SpeakingMetric

logger = logging.getLogger(__name__)


class FrameClassifier(abc.ABC):
    """逐帧分类适配器：表情、眼神接触、姿态与手机检测。"""

    @abc.abstractmethod
    async def analyze(self, frame: Any) -> FrameClassification:
        """分析一帧并返回原始分类结果，失败时抛出异常。"""

    def close(self) -> None:
        """释放底层资源。默认无需处理。"""


class SpeakingMetricAdapter(abc.ABC):
    """语音表现适配器，每个 tick 采样一次。"""

    @abc.abstractmethod
    async def analyze_speaking_skills(self) -> SpeakingMetric:
        """返回当前语音得分与口头禅计数。"""


class ClassifierGuard:
    """为分类调用加上超时，失败与超时都转换为 None（即 unknown 样本）。

    超时只放弃等待，不会中断已经交给线程池的推理。底层分析任务会被保留到
    真正结束，期间 `busy` 为真，调用方据此丢弃新的 tick，保证同一时刻最多
    只有一次分类在执行。
    """

    def __init__(self, classifier: FrameClassifier, timeout: float = 0.8) -> None:
        self._classifier = classifier
        self._timeout = timeout
        self._inflight: Optional["asyncio.Task[FrameClassification]"] = None
        self.failures = 0

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def classify(self, frame: Any) -> Optional[FrameClassification]:
        if self.busy:
            raise RuntimeError("上一次帧分类尚未结束")

        task = asyncio.ensure_future(self._classifier.analyze(frame))
        task.add_done_callback(_consume_late_result)
        self._inflight = task
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self._timeout)
        except asyncio.TimeoutError:
            self.failures += 1
            logger.warning("帧分类超时 (>%.2fs)，记为 unknown 样本", self._timeout)
        except Exception as exc:
            self.failures += 1
            logger.warning("帧分类失败，记为 unknown 样本: %s", exc)
        return None


def _consume_late_result(task: "asyncio.Future[Any]") -> None:
    # 超时后才结束的任务无人等待，在这里取走异常
    if not task.cancelled() and task.exception() is not None:
        logger.debug("超时后的帧分类以异常结束: %s", task.exception())


class SpeakingGuard:
    """语音采样的超时保护，失败时本 tick 视为缺失样本。"""

    def __init__(self, adapter: Optional[SpeakingMetricAdapter], timeout: float = 0.8) -> None:
        self._adapter = adapter
        self._timeout = timeout
        self.failures = 0

    async def sample(self) -> Optional[SpeakingMetric]:
        if self._adapter is None:
            return None
        try:
            return await asyncio.wait_for(self._adapter.analyze_speaking_skills(), timeout=self._timeout)
        except asyncio.TimeoutError:
            self.failures += 1
            logger.warning("语音分析超时 (>%.2fs)，本 tick 缺失语音样本", self._timeout)
        except Exception as exc:
            self.failures += 1
            logger.warning("语音分析失败，本 tick 缺失语音样本: %s", exc)
        return None
