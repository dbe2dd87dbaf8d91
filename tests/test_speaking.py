from __future__ import annotations

import asyncio

import pytest

from interviewlens.adapters.speaking import SimulatedSpeakingAdapter, SpeechFeatures, compute_speaking_score
from interviewlens.core.models import FillerWords


def _features(value: float) -> SpeechFeatures:
    return SpeechFeatures(
        pitch=value,
        volume=value,
        clarity=value,
        stability=value,
        pace=value,
        rhythm=value,
        flow=value,
        pronunciation=value,
        enunciation=value,
        speed=value,
    )


def test_score_without_fillers_is_mean_of_components() -> None:
    assert compute_speaking_score(_features(0.8), FillerWords()) == pytest.approx(0.8)


def test_filler_penalty_ignores_you_know() -> None:
    fillers = FillerWords(um=2, uh=1, like=0, you_know=5)
    assert compute_speaking_score(_features(0.8), fillers) == pytest.approx(0.74)


def test_filler_penalty_is_capped() -> None:
    fillers = FillerWords(um=30, uh=30, like=30)
    assert compute_speaking_score(_features(0.8), fillers) == pytest.approx(0.6)


def test_score_is_floored_at_zero() -> None:
    assert compute_speaking_score(_features(0.1), FillerWords(um=20)) == 0.0


def test_simulated_adapter_is_reproducible() -> None:
    first = asyncio.run(SimulatedSpeakingAdapter(seed=7).analyze_speaking_skills())
    second = asyncio.run(SimulatedSpeakingAdapter(seed=7).analyze_speaking_skills())
    assert first == second
    assert 0.0 <= first.score <= 1.0
    assert first.filler_words.um <= 3
    assert first.filler_words.like <= 4


def test_simulated_adapter_keeps_feature_details() -> None:
    metric = asyncio.run(SimulatedSpeakingAdapter(seed=3).analyze_speaking_skills())
    assert metric.features is not None
    assert metric.score == pytest.approx(compute_speaking_score(metric.features, metric.filler_words))
    assert 0.0 <= metric.features.tone <= 1.0


def test_scored_fillers_exclude_you_know() -> None:
    fillers = FillerWords(um=1, uh=2, like=3, you_know=4)
    assert fillers.scored == 6
    assert fillers.total == 10
