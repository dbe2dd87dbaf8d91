"""关键点几何判定单元测试。"""

from __future__ import annotations

from dataclasses import dataclass

from interviewlens.adapters.vision.landmarks import (
    PHONE_CLASS_ID,
    LandmarkThresholds,
    ObjectDetection,
    classify_posture,
    detect_eye_contact,
    dominant_expression,
    pick_phone_detection,
)


@dataclass
class _Landmark:
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


def _make_keypoints(**kwargs) -> dict[str, _Landmark]:
    return {name: _Landmark(*values) for name, values in kwargs.items()}


def _face(left_x: float, right_x: float) -> list[_Landmark]:
    landmarks = [_Landmark(0.5, 0.5) for _ in range(468)]
    landmarks[33] = _Landmark(left_x, 0.4)
    landmarks[263] = _Landmark(right_x, 0.4)
    return landmarks


def test_eye_contact_when_eyes_centered() -> None:
    assert detect_eye_contact(_face(0.4, 0.62)) is True


def test_no_eye_contact_when_looking_away() -> None:
    assert detect_eye_contact(_face(0.1, 0.3)) is False


def test_no_eye_contact_without_face() -> None:
    assert detect_eye_contact(None) is False
    assert detect_eye_contact([_Landmark(0.5, 0.5)] * 10) is False


def test_posture_upright_with_level_shoulders() -> None:
    keypoints = _make_keypoints(
        left_shoulder=(0.4, 0.40, 0.0, 0.9),
        right_shoulder=(0.6, 0.42, 0.0, 0.9),
        left_hip=(0.4, 0.7, 0.0, 0.6),
        right_hip=(0.6, 0.7, 0.0, 0.6),
    )
    reading = classify_posture(keypoints)
    assert reading is not None
    assert reading.label == "upright"
    assert abs(reading.confidence - 0.75) < 1e-6


def test_posture_slouched_with_tilted_shoulders() -> None:
    keypoints = _make_keypoints(
        left_shoulder=(0.4, 0.40, 0.0, 0.8),
        right_shoulder=(0.6, 0.50, 0.0, 0.8),
    )
    reading = classify_posture(keypoints)
    assert reading is not None
    assert reading.label == "slouched"


def test_posture_low_visibility_is_unknown() -> None:
    keypoints = _make_keypoints(
        left_shoulder=(0.4, 0.4, 0.0, 0.1),
        right_shoulder=(0.6, 0.4, 0.0, 0.1),
    )
    reading = classify_posture(keypoints, LandmarkThresholds(min_landmark_confidence=0.3))
    assert reading is not None
    assert reading.label == "unknown"


def test_posture_without_shoulders_returns_none() -> None:
    keypoints = _make_keypoints(left_hip=(0.4, 0.7, 0.0, 0.9))
    assert classify_posture(keypoints) is None


def test_dominant_expression_picks_highest_score() -> None:
    reading = dominant_expression({"neutral": 0.2, "happy": 0.7, "sad": 0.1})
    assert reading is not None
    assert reading.label == "happy"
    assert abs(reading.confidence - 0.7) < 1e-6
    assert dominant_expression({}) is None


def test_phone_detection_filters_class_and_confidence() -> None:
    detections = [
        ObjectDetection(class_id=0, confidence=0.99),
        ObjectDetection(class_id=PHONE_CLASS_ID, confidence=0.25),
        ObjectDetection(class_id=PHONE_CLASS_ID, confidence=0.55),
    ]
    phone = pick_phone_detection(detections)
    assert phone.present is True
    assert phone.confidence == 0.55

    assert pick_phone_detection(detections[:2]).present is False
