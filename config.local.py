"""本地配置覆盖示例（AppConfig.load 会自动调用 load_config）。"""

from interviewlens.config import AppConfig


def load_config() -> AppConfig:
    return AppConfig(
        expression_smoothing_window=3,
        posture_smoothing_window=3,
        phone_smoothing_window=3,
        hysteresis_margin=1.2,
        initial_skip_factor=1,
        tick_interval_seconds=1.0,
        cycle_duration_seconds=10.0,
        classifier_timeout_seconds=0.8,
        vision_enabled=True,
        vision_backend="auto",
        camera_device_index=0,
        gaze_center_tolerance=0.1,
        shoulder_tilt_tolerance=0.05,
        # vision_backend="simulated",
        # api_port=8080,
    )
