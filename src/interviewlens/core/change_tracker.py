"""平滑信号的状态变化追踪。"""

from __future__ import annotations

import logging
from typing import List, Optional

from interviewlens.core.models import ChangeEntry

logger = logging.getLogger(__name__)


class StateChangeTracker:
    """记录平滑值的每次跳变。

    只在新值与上一个稳定值不同时追加日志，因此不会出现相邻的重复条目；
    相对时间戳被钳制为单调不减。
    """

    def __init__(self, name: str, initial: str) -> None:
        self._name = name
        self._current = initial
        self._changes: List[ChangeEntry] = []
        self._last_timestamp = 0.0

    @property
    def current(self) -> str:
        return self._current

    @property
    def changes(self) -> List[ChangeEntry]:
        return list(self._changes)

    def observe(self, value: str, timestamp: float, frame_index: int) -> Optional[ChangeEntry]:
        """比较新值与稳定值，发生变化时记录并返回变化条目。"""

        if value == self._current:
            return None

        timestamp = max(timestamp, self._last_timestamp)
        entry = ChangeEntry(
            timestamp=timestamp,
            frame_index=frame_index,
            from_label=self._current,
            to_label=value,
        )
        self._changes.append(entry)
        self._current = value
        self._last_timestamp = timestamp
        logger.debug("%s 变化: %s -> %s (帧 %d)", self._name, entry.from_label, value, frame_index)
        return entry
