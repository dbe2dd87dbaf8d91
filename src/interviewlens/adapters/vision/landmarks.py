"""基于 MediaPipe 关键点的逐帧分类：眼神接触、坐姿、表情与手机检测。"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

import numpy as np

from interviewlens.adapters.base import FrameClassifier
from interviewlens.config import AppConfig
from interviewlens.core.models import (
    NEUTRAL_LABEL,
    UNKNOWN_LABEL,
    FrameClassification,
    LabelReading,
    PhoneDetection,
)

logger = logging.getLogger(__name__)

try:  # pragma: no cover - 依赖可选组件
    import mediapipe as mp  # type: ignore
except ImportError:  # pragma: no cover - 未安装 mediapipe 时允许降级
    mp = None  # type: ignore

# FaceMesh 左右眼外眼角
LEFT_EYE_LANDMARK = 33
RIGHT_EYE_LANDMARK = 263
# COCO 数据集中的 "cell phone"
PHONE_CLASS_ID = 67

UPRIGHT_LABEL = "upright"
SLOUCHED_LABEL = "slouched"


@dataclass
class LandmarkThresholds:
    """关键点判定阈值。"""

    gaze_center_tolerance: float = 0.1
    shoulder_tilt_tolerance: float = 0.05
    min_landmark_confidence: float = 0.3
    phone_confidence_threshold: float = 0.3

    @classmethod
    def from_config(cls, config: AppConfig) -> "LandmarkThresholds":
        return cls(
            gaze_center_tolerance=config.gaze_center_tolerance,
            shoulder_tilt_tolerance=config.shoulder_tilt_tolerance,
            min_landmark_confidence=config.min_landmark_confidence,
            phone_confidence_threshold=config.phone_confidence_threshold,
        )


@dataclass(frozen=True)
class ObjectDetection:
    class_id: int
    confidence: float


# 表情模型：输入 RGB 帧与人脸关键点，输出各表情得分
ExpressionModel = Callable[[np.ndarray, Sequence[Any]], Mapping[str, float]]
# 目标检测模型：输入 RGB 帧，输出检测框类别与置信度
ObjectDetector = Callable[[np.ndarray], Iterable[ObjectDetection]]


def detect_eye_contact(
    face_landmarks: Optional[Sequence[Any]],
    thresholds: Optional[LandmarkThresholds] = None,
) -> bool:
    """两眼外眼角的水平中点接近画面中心即视为看向镜头。"""

    thresholds = thresholds or LandmarkThresholds()
    if face_landmarks is None or len(face_landmarks) <= RIGHT_EYE_LANDMARK:
        return False
    xs = np.array([face_landmarks[LEFT_EYE_LANDMARK].x, face_landmarks[RIGHT_EYE_LANDMARK].x])
    return abs(float(xs.mean()) - 0.5) < thresholds.gaze_center_tolerance


def classify_posture(
    keypoints: Mapping[str, Any],
    thresholds: Optional[LandmarkThresholds] = None,
) -> Optional[LabelReading]:
    """根据双肩高度差判断坐姿，置信度取肩部（及可见的髋部）关键点可见度均值。

    缺少肩部关键点时返回 None，由会话按 unknown 处理。
    """

    thresholds = thresholds or LandmarkThresholds()
    left = keypoints.get("left_shoulder")
    right = keypoints.get("right_shoulder")
    if left is None or right is None:
        return None

    left_shoulder = np.array([left.x, left.y, left.visibility])
    right_shoulder = np.array([right.x, right.y, right.visibility])

    visibilities = [left_shoulder[2], right_shoulder[2]]
    for name in ("left_hip", "right_hip"):
        hip = keypoints.get(name)
        if hip is not None:
            visibilities.append(hip.visibility)
    confidence = float(np.clip(np.mean(visibilities), 0.0, 1.0))

    if confidence < thresholds.min_landmark_confidence:
        return LabelReading(UNKNOWN_LABEL, confidence)

    shoulder_tilt = abs(float(left_shoulder[1] - right_shoulder[1]))
    label = UPRIGHT_LABEL if shoulder_tilt < thresholds.shoulder_tilt_tolerance else SLOUCHED_LABEL
    return LabelReading(label, confidence)


def dominant_expression(scores: Mapping[str, float]) -> Optional[LabelReading]:
    """取得分最高的表情，并列时取先出现的标签。"""

    if not scores:
        return None
    labels = list(scores.keys())
    values = np.array([float(scores[label]) for label in labels])
    index = int(np.argmax(values))
    return LabelReading(labels[index], float(np.clip(values[index], 0.0, 1.0)))


def pick_phone_detection(
    detections: Iterable[ObjectDetection],
    thresholds: Optional[LandmarkThresholds] = None,
) -> PhoneDetection:
    thresholds = thresholds or LandmarkThresholds()
    phones = [
        detection.confidence
        for detection in detections
        if detection.class_id == PHONE_CLASS_ID and detection.confidence > thresholds.phone_confidence_threshold
    ]
    if not phones:
        return PhoneDetection()
    return PhoneDetection(present=True, confidence=float(max(phones)))


class MediaPipeFrameClassifier(FrameClassifier):
    """FaceMesh + Pose 的组合分类器。

    表情与手机检测依赖外部模型，通过 `expression_model` 与 `object_detector`
    注入；未注入表情模型时检测到人脸即返回 neutral。推理在单线程的专用线程池中
    执行，FaceMesh 与 Pose 图不会被并发调用。
    """

    def __init__(
        self,
        thresholds: Optional[LandmarkThresholds] = None,
        expression_model: Optional[ExpressionModel] = None,
        object_detector: Optional[ObjectDetector] = None,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ) -> None:
        if mp is None:  # pragma: no cover - 仅在缺少 mediapipe 时触发
            raise RuntimeError("未找到 MediaPipe，请先安装 `pip install .[vision]` 并确认 mediapipe 可用")
        self._thresholds = thresholds or LandmarkThresholds()
        self._expression_model = expression_model
        self._object_detector = object_detector
        self._face_mesh = mp.solutions.face_mesh.FaceMesh(  # type: ignore[attr-defined]
            static_image_mode=False,
            max_num_faces=1,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self._pose = mp.solutions.pose.Pose(  # type: ignore[attr-defined]
            static_image_mode=False,
            model_complexity=1,
            smooth_landmarks=True,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mediapipe")

    async def analyze(self, frame: Any) -> FrameClassification:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._analyze_sync, frame)

    def _analyze_sync(self, frame: Any) -> FrameClassification:
        if frame is None:
            raise RuntimeError("当前没有可用的摄像头帧")
        rgb = np.ascontiguousarray(getattr(frame, "rgb", frame))

        face_results = self._face_mesh.process(rgb)  # type: ignore[call-arg]
        face_landmarks = None
        if face_results is not None and face_results.multi_face_landmarks:
            face_landmarks = face_results.multi_face_landmarks[0].landmark

        pose_results = self._pose.process(rgb)  # type: ignore[call-arg]
        posture = None
        if pose_results is not None and pose_results.pose_landmarks is not None:
            landmarks = pose_results.pose_landmarks.landmark
            keypoints = {lm.name.lower(): landmarks[lm.value] for lm in mp.solutions.pose.PoseLandmark}  # type: ignore[attr-defined]
            posture = classify_posture(keypoints, self._thresholds)

        return FrameClassification(
            expression=self._classify_expression(rgb, face_landmarks),
            eye_contact=detect_eye_contact(face_landmarks, self._thresholds),
            posture=posture,
            phone=self._detect_phone(rgb),
        )

    def _classify_expression(self, rgb: np.ndarray, face_landmarks: Optional[Sequence[Any]]) -> Optional[LabelReading]:
        if face_landmarks is None:
            return None
        if self._expression_model is None:
            return LabelReading(NEUTRAL_LABEL, 0.5)
        return dominant_expression(self._expression_model(rgb, face_landmarks))

    def _detect_phone(self, rgb: np.ndarray) -> PhoneDetection:
        if self._object_detector is None:
            return PhoneDetection()
        return pick_phone_detection(self._object_detector(rgb), self._thresholds)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._face_mesh.close()
        self._pose.close()
