"""视觉分类适配器。"""

from .landmarks import (
    LandmarkThresholds,
    MediaPipeFrameClassifier,
    ObjectDetection,
    classify_posture,
    detect_eye_contact,
    dominant_expression,
    pick_phone_detection,
)
from .simulated import SimulatedFrameClassifier

camera_import_exc = None
try:
    from .capture import CameraCapture, LatestFrameSource  # noqa: F401
except Exception as exc:  # pragma: no cover - 视觉依赖缺失时触发
    camera_import_exc = exc
    CameraCapture = None  # type: ignore[assignment]
    LatestFrameSource = None  # type: ignore[assignment]

__all__ = [
    "CameraCapture",
    "LandmarkThresholds",
    "LatestFrameSource",
    "MediaPipeFrameClassifier",
    "ObjectDetection",
    "SimulatedFrameClassifier",
    "camera_import_exc",
    "classify_posture",
    "detect_eye_contact",
    "dominant_expression",
    "pick_phone_detection",
]
