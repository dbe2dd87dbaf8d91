"""应用配置模型。"""

from __future__ import annotations

import importlib.util
import logging
import os
from pathlib import Path
from types import ModuleType
from typing import Optional, Union

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "INTERVIEWLENS_CONFIG"
DEFAULT_LOCAL_CONFIG = Path(__file__).resolve().parents[2] / "config.local.py"


class AppConfig(BaseModel):
    """总配置，默认值与实时分析管线的推荐参数一致。"""

    # 平滑窗口
    expression_smoothing_window: int = Field(3, ge=1)
    posture_smoothing_window: int = Field(3, ge=1)
    phone_smoothing_window: int = Field(3, ge=1)
    hysteresis_margin: float = Field(1.2, ge=1.0)
    phone_detection_threshold: float = Field(1.0, ge=0.0)

    # 自适应采样
    initial_skip_factor: int = Field(1, ge=1, le=10)
    max_skip_factor: int = Field(10, ge=1)
    latency_upper_bound_ms: float = Field(50.0, gt=0.0)
    latency_lower_bound_ms: float = Field(30.0, ge=0.0)

    # 周期调度
    tick_interval_seconds: float = Field(1.0, gt=0.0)
    cycle_duration_seconds: float = Field(10.0, gt=0.0)
    classifier_timeout_seconds: float = Field(0.8, gt=0.0)
    speaking_timeout_seconds: float = Field(0.8, gt=0.0)

    # 汇总
    recent_results_limit: int = Field(10, ge=1)
    speaking_summary_window: int = Field(5, ge=1)

    # 视觉适配器
    vision_enabled: bool = True
    vision_backend: str = "auto"
    camera_device_index: int = Field(0, ge=0)
    camera_frame_size: int = Field(256, ge=32)
    gaze_center_tolerance: float = Field(0.1, gt=0.0, le=0.5)
    shoulder_tilt_tolerance: float = Field(0.05, gt=0.0)
    min_landmark_confidence: float = Field(0.3, ge=0.0, le=1.0)
    phone_confidence_threshold: float = Field(0.3, ge=0.0, le=1.0)

    # 控制接口
    api_host: str = "127.0.0.1"
    api_port: int = Field(8000, ge=1, le=65535)

    @model_validator(mode="after")
    def _check_bounds(self) -> "AppConfig":
        if self.latency_lower_bound_ms >= self.latency_upper_bound_ms:
            raise ValueError("latency_lower_bound_ms 必须小于 latency_upper_bound_ms")
        if self.initial_skip_factor > self.max_skip_factor:
            raise ValueError("initial_skip_factor 不能大于 max_skip_factor")
        return self

    @classmethod
    def load_default(cls) -> "AppConfig":
        return cls()

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "AppConfig":
        """加载本地配置文件，失败时回退到默认配置。

        查找顺序：显式传入的 path、环境变量 INTERVIEWLENS_CONFIG、项目根目录的
        `config.local.py`。文件需定义 `load_config()`，返回 AppConfig 或字段字典。
        """

        local_path = _resolve_local_path(path)
        if local_path is None:
            return cls.load_default()

        module = _exec_local_module(local_path)
        if module is None:
            return cls.load_default()
        load_fn = getattr(module, "load_config", None)
        if not callable(load_fn):
            logger.warning("%s 未定义 load_config()，使用默认配置", local_path)
            return cls.load_default()

        try:
            loaded = load_fn()
            config = loaded if isinstance(loaded, cls) else cls.model_validate(loaded)
        except Exception:
            logger.warning("%s 中的 load_config 执行失败，使用默认配置", local_path, exc_info=True)
            return cls.load_default()
        logger.info("已加载本地配置 %s", local_path)
        return config


def _resolve_local_path(path: Optional[Union[str, Path]]) -> Optional[Path]:
    candidate = path or os.environ.get(CONFIG_ENV_VAR)
    if candidate:
        resolved = Path(candidate).expanduser()
        if not resolved.is_file():
            logger.warning("配置文件 %s 不存在，使用默认配置", resolved)
            return None
        return resolved
    return DEFAULT_LOCAL_CONFIG if DEFAULT_LOCAL_CONFIG.is_file() else None


def _exec_local_module(path: Path) -> Optional[ModuleType]:
    spec = importlib.util.spec_from_file_location("interviewlens_local_config", path)
    if spec is None or spec.loader is None:
        return None
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception:
        logger.warning("无法执行配置文件 %s", path, exc_info=True)
        return None
    return module
