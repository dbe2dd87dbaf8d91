"""基于 OpenCV 的摄像头采集。"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import cv2  # type: ignore
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class Frame:
    """摄像头帧数据。"""

    rgb: np.ndarray
    timestamp: float
    index: int


class CameraCapture:
    """摄像头帧捕获，支持异步迭代。"""

    def __init__(self, device_index: int = 0, frame_size: int = 256) -> None:
        self.device_index = device_index
        self.frame_size = frame_size
        self._capture: Optional[cv2.VideoCapture] = None
        self._index = 0

    async def __aenter__(self) -> "CameraCapture":
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.open)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.release)

    def open(self) -> None:
        self._capture = cv2.VideoCapture(self.device_index)
        if not self._capture.isOpened():
            raise RuntimeError("无法打开摄像头，请检查权限或设备连接")

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None

    def read(self, timestamp: float = 0.0) -> Optional[Frame]:
        """同步读取一帧，失败返回 None。"""

        if self._capture is None:
            raise RuntimeError("摄像头未打开")
        ret, frame = self._capture.read()
        if not ret:
            return None
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        resized_rgb = cv2.resize(rgb, (self.frame_size, self.frame_size), interpolation=cv2.INTER_AREA)
        self._index += 1
        return Frame(rgb=resized_rgb, timestamp=timestamp, index=self._index)

    async def frames(self) -> AsyncIterator[Frame]:
        loop = asyncio.get_running_loop()
        while True:
            frame = await loop.run_in_executor(None, self.read, loop.time())
            if frame is None:
                logger.warning("摄像头读取失败，尝试重连")
                await loop.run_in_executor(None, self.open)
                continue
            yield frame


class LatestFrameSource:
    """后台线程持续读取摄像头，tick 时只取最新一帧，不阻塞事件循环。"""

    def __init__(self, capture: CameraCapture) -> None:
        self._capture = capture
        self._latest: Optional[Frame] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __call__(self) -> Optional[Frame]:
        with self._lock:
            return self._latest

    def start(self) -> None:
        if self._thread is not None:
            return
        self._capture.open()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="interviewlens-camera", daemon=True)
        self._thread.start()
        logger.info("摄像头采集线程已启动 (device=%d)", self._capture.device_index)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._capture.release()

    def _run(self) -> None:
        failures = 0
        while not self._stop_event.is_set():
            frame = self._capture.read()
            if frame is None:
                failures += 1
                if failures % 30 == 1:
                    logger.warning("摄像头读取失败（连续 %d 次）", failures)
                self._stop_event.wait(0.1)
                continue
            failures = 0
            with self._lock:
                self._latest = frame
