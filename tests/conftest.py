from __future__ import annotations

import pytest

from adapt_core.controller import new_context
from adapt_core.effects import EffectSet
from adapt_core.types import (
    AbilityProfile,
    AdaptationDecision,
    LearningProfile,
    PerformanceSample,
    SourceSignals,
)


def build_profile(base: int = 8, style: str = "mixed", **scores: int) -> AbilityProfile:
    """Profile with every dimension at ``base`` (no ability rule fires) unless overridden."""

    values = {
        "fine_motor": base,
        "gross_motor": base,
        "visual": base,
        "auditory": base,
        "cognitive": base,
        "attention": base,
        "memory": base,
        "processing": base,
    }
    values.update(scores)
    return AbilityProfile(learning=LearningProfile(style=style), **values)


def build_sample(success_rate: float, timestamp: float = 100.0, **kwargs) -> PerformanceSample:
    return PerformanceSample(success_rate=success_rate, timestamp=timestamp, **kwargs)


def build_decision(
    success_rate: float | None = 0.5,
    timestamp: float = 0.0,
    outcome_known: bool = False,
    outcome_success: bool | None = None,
) -> AdaptationDecision:
    return AdaptationDecision(
        source_signals=SourceSignals(),
        resulting_effect_set=EffectSet(),
        timestamp=timestamp,
        outcome_known=outcome_known,
        outcome_success=outcome_success,
        sample=None if success_rate is None else build_sample(success_rate, timestamp),
    )


@pytest.fixture
def strong_profile() -> AbilityProfile:
    return build_profile()


@pytest.fixture
def ctx():
    return new_context("user-1", build_profile())
