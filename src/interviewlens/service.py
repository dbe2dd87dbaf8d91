"""按配置装配分类器、摄像头与编排器。"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from interviewlens.adapters.base import FrameClassifier
from interviewlens.adapters.speaking import SimulatedSpeakingAdapter
from interviewlens.adapters.vision import (
    CameraCapture,
    LandmarkThresholds,
    LatestFrameSource,
    SimulatedFrameClassifier,
    camera_import_exc,
)
from interviewlens.config import AppConfig
from interviewlens.core.orchestrator import CycleOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class InterviewService:
    """编排器及其外部资源的生命周期。"""

    orchestrator: CycleOrchestrator
    frame_source: Optional[LatestFrameSource] = None

    def start(self) -> None:
        if self.frame_source is not None:
            self.frame_source.start()

    def close(self) -> None:
        self.orchestrator.end_interview()
        if self.frame_source is not None:
            self.frame_source.stop()
        self.orchestrator.classifier.close()

    @asynccontextmanager
    async def lifespan(self, app: Any) -> AsyncIterator[None]:
        """作为 FastAPI lifespan 使用：启动时打开摄像头，关闭时结束面试并释放资源。"""

        self.start()
        logger.info("面试分析服务已启动")
        try:
            yield
        finally:
            self.close()
            logger.info("面试分析服务已关闭")


def _create_camera_classifier(config: AppConfig) -> tuple[FrameClassifier, LatestFrameSource]:
    from interviewlens.adapters.vision.landmarks import MediaPipeFrameClassifier

    if CameraCapture is None or LatestFrameSource is None:
        raise RuntimeError(f"摄像头模块不可用: {camera_import_exc}")
    classifier = MediaPipeFrameClassifier(thresholds=LandmarkThresholds.from_config(config))
    capture = CameraCapture(device_index=config.camera_device_index, frame_size=config.camera_frame_size)
    return classifier, LatestFrameSource(capture)


def build_service(config: Optional[AppConfig] = None) -> InterviewService:
    """根据配置创建服务；真实视觉管线不可用时降级为模拟分类器。"""

    config = config or AppConfig.load()
    backend = (config.vision_backend or "auto").lower()

    classifier: Optional[FrameClassifier] = None
    frame_source: Optional[LatestFrameSource] = None

    if config.vision_enabled and backend in ("auto", "mediapipe"):
        try:
            classifier, frame_source = _create_camera_classifier(config)
        except Exception as exc:  # pragma: no cover - 依赖或设备缺失
            if backend == "mediapipe":
                raise
            logger.warning("视觉管线初始化失败，改用模拟分类器: %s", exc)

    if classifier is None:
        logger.info("使用模拟分类器 (backend=%s)", backend)
        classifier = SimulatedFrameClassifier()

    orchestrator = CycleOrchestrator(
        classifier=classifier,
        speaking=SimulatedSpeakingAdapter(),
        frame_source=frame_source,
        config=config,
    )
    return InterviewService(orchestrator=orchestrator, frame_source=frame_source)
