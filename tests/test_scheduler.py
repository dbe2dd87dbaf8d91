"""定时器调度：手动时钟顺序与 asyncio 实现。"""

from __future__ import annotations

import asyncio

from interviewlens.core.scheduler import AsyncioScheduler, ManualScheduler


def test_manual_scheduler_orders_by_due_time_then_registration() -> None:
    scheduler = ManualScheduler()
    fired: list[tuple[str, float]] = []
    scheduler.call_every(1.0, lambda: fired.append(("tick", scheduler.now())))
    scheduler.call_every(2.0, lambda: fired.append(("cycle", scheduler.now())))
    scheduler.call_every(1.5, lambda: fired.append(("slow", scheduler.now())))

    asyncio.run(scheduler.advance(2.0))

    assert fired == [("tick", 1.0), ("slow", 1.5), ("tick", 2.0), ("cycle", 2.0)]
    assert scheduler.now() == 2.0
    assert scheduler.active_timers == 3


def test_manual_scheduler_cancel() -> None:
    scheduler = ManualScheduler()
    fired: list[float] = []
    handle = scheduler.call_every(1.0, lambda: fired.append(scheduler.now()))

    async def scenario() -> None:
        await scheduler.advance(2.0)
        handle.cancel()
        await scheduler.advance(5.0)

    asyncio.run(scenario())
    assert fired == [1.0, 2.0]
    assert handle.cancelled is True
    assert scheduler.active_timers == 0


def test_asyncio_scheduler_repeats_until_cancelled() -> None:
    scheduler = AsyncioScheduler()
    fired: list[float] = []

    async def scenario() -> None:
        handle = scheduler.call_every(0.01, lambda: fired.append(scheduler.now()))
        await asyncio.sleep(0.1)
        handle.cancel()
        count = len(fired)
        await asyncio.sleep(0.05)
        assert len(fired) == count

    asyncio.run(scenario())
    assert len(fired) >= 2
    assert fired == sorted(fired)


def test_asyncio_scheduler_survives_callback_error() -> None:
    scheduler = AsyncioScheduler()
    calls: list[int] = []

    def callback() -> None:
        calls.append(1)
        raise RuntimeError("boom")

    async def scenario() -> None:
        handle = scheduler.call_every(0.01, callback)
        await asyncio.sleep(0.08)
        handle.cancel()

    asyncio.run(scenario())
    assert len(calls) >= 2
