from __future__ import annotations

import pytest

from interviewlens.core.sampler import AdaptiveSampler


def test_skip_factor_follows_latency() -> None:
    sampler = AdaptiveSampler(initial_skip=1)
    factors = [sampler.record_latency(latency) for latency in (60, 60, 20, 20)]
    assert factors == [2, 3, 2, 1]


def test_deadband_keeps_skip_factor() -> None:
    sampler = AdaptiveSampler(initial_skip=3)
    assert sampler.record_latency(40) == 3
    assert sampler.record_latency(30) == 3
    assert sampler.record_latency(50) == 3


def test_skip_factor_is_bounded() -> None:
    sampler = AdaptiveSampler(initial_skip=1, max_skip=10)
    for _ in range(20):
        sampler.record_latency(500)
    assert sampler.skip_factor == 10
    for _ in range(20):
        sampler.record_latency(1)
    assert sampler.skip_factor == 1


def test_first_frame_always_processed() -> None:
    sampler = AdaptiveSampler(initial_skip=4)
    assert sampler.should_process() is True
    assert [sampler.should_process() for _ in range(4)] == [False, False, False, True]


def test_gate_follows_adjusted_skip_factor() -> None:
    sampler = AdaptiveSampler(initial_skip=1)
    assert sampler.should_process() is True
    sampler.record_latency(60)
    decisions = [sampler.should_process() for _ in range(4)]
    assert decisions == [False, True, False, True]

    snapshot = sampler.snapshot()
    assert snapshot.skip_factor == 2
    assert snapshot.last_latency_ms == 60
    assert snapshot.frames_offered == 5
    assert snapshot.frames_skipped == 2


def test_invalid_parameters_are_rejected() -> None:
    with pytest.raises(ValueError):
        AdaptiveSampler(initial_skip=0)
    with pytest.raises(ValueError):
        AdaptiveSampler(upper_bound_ms=30, lower_bound_ms=30)
