"""可注入的定时器调度，生产环境基于 asyncio，测试使用手动时钟。"""

from __future__ import annotations

import abc
import asyncio
import itertools
import logging
import time
from typing import Any, Callable, Coroutine, List, Optional, Set

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TimerHandle(abc.ABC):
    """可取消的定时器句柄。"""

    @abc.abstractmethod
    def cancel(self) -> None:
        """取消定时器，重复调用无副作用。"""

    @property
    @abc.abstractmethod
    def cancelled(self) -> bool:
        """是否已取消。"""


class Scheduler(abc.ABC):
    """协作式调度接口：周期定时与后台协程。"""

    @abc.abstractmethod
    def now(self) -> float:
        """单调时钟读数（秒）。"""

    @abc.abstractmethod
    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        """每隔 interval 秒执行一次 callback，首次在 interval 秒后。"""

    @abc.abstractmethod
    def spawn(self, coro: Coroutine[Any, Any, None]) -> "asyncio.Task[None]":
        """在事件循环中启动协程。"""


class _AsyncioTimer(TimerHandle):
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval: float,
        callback: Callback,
    ) -> None:
        self._loop = loop
        self._callback = callback
        self._interval = interval
        self._cancelled = False
        self._next_at = loop.time() + interval
        self._handle: Optional[asyncio.TimerHandle] = loop.call_at(self._next_at, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        # 以计划时间为基准递推，避免累计漂移
        self._next_at += self._interval
        self._handle = self._loop.call_at(self._next_at, self._fire)
        try:
            self._callback()
        except Exception:
            logger.exception("定时回调执行失败")

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(Scheduler):
    """基于运行中事件循环的调度器，未指定 loop 时在调用处获取。"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def now(self) -> float:
        try:
            return self._get_loop().time()
        except RuntimeError:
            # 事件循环之外（例如同步查询状态）退回到单调时钟
            return time.monotonic()

    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        return _AsyncioTimer(self._get_loop(), interval, callback)

    def spawn(self, coro: Coroutine[Any, Any, None]) -> "asyncio.Task[None]":
        return self._get_loop().create_task(coro)


class _ManualTimer(TimerHandle):
    def __init__(self, due: float, order: int, callback: Callback, interval: float) -> None:
        self.due = due
        self.order = order
        self.callback = callback
        self.interval = interval
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """手动推进的假时钟。

    `advance` 按 (到期时间, 注册顺序) 依次触发定时器，每次回调后等待新启动的
    协程完成（最多 settle_timeout 秒真实时间），保证测试中的执行顺序确定。
    """

    def __init__(self, start: float = 0.0, settle_timeout: float = 1.0) -> None:
        self._now = start
        self._settle_timeout = settle_timeout
        self._timers: List[_ManualTimer] = []
        self._order = itertools.count()
        self._tasks: Set["asyncio.Task[None]"] = set()

    def now(self) -> float:
        return self._now

    @property
    def active_timers(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        timer = _ManualTimer(self._now + interval, next(self._order), callback, interval)
        self._timers.append(timer)
        return timer

    def spawn(self, coro: Coroutine[Any, Any, None]) -> "asyncio.Task[None]":
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            self._timers = [timer for timer in self._timers if not timer.cancelled]
            due = [timer for timer in self._timers if timer.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.order))
            self._now = timer.due
            timer.due += timer.interval
            timer.callback()
            await self.settle()
        self._now = target
        await self.settle()

    async def settle(self) -> None:
        """让已启动的协程运行到完成或超时。"""

        await asyncio.sleep(0)
        pending = [task for task in self._tasks if not task.done()]
        if pending:
            await asyncio.wait(pending, timeout=self._settle_timeout)
