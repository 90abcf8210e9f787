# adapt_core/telemetry.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Mapping, Optional
import math
import time

from .config import BEHAVIOR_LOOKBACK_SEC, INTERACTION_LOG_CAP
from .types import PerformanceSample

_DIFFICULTIES = ("easy", "medium", "hard")
_ASSISTANCE = ("minimal", "moderate", "extensive")

# Accepted spellings for each raw counter.
_ALIASES = {
    "interactions": ("interactions", "interactionCount", "interaction_count"),
    "errors": ("errors", "errorCount", "error_count"),
    "steps_completed": ("stepsCompleted", "steps_completed"),
    "total_steps": ("totalSteps", "total_steps"),
    "duration_ms": ("duration", "durationMs", "duration_ms", "completionTimeMs"),
    "successes": ("successes", "successCount", "success_count"),
    "attempts": ("attempts", "attemptCount", "attempt_count"),
    "success_rate": ("successRate", "success_rate"),
}


def _count(raw: Any) -> float:
    try:
        val = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(val) or val < 0:
        return 0.0
    return val


def _safe_ratio(num: float, den: float) -> float:
    """num / max(den, 1), clamped to 0..1."""

    ratio = float(num) / max(float(den), 1.0)
    return max(0.0, min(1.0, ratio))


def _lookup(counters: Mapping[str, Any], name: str) -> Any:
    for key in _ALIASES[name]:
        if key in counters:
            return counters[key]
    return None


@dataclass(frozen=True)
class Interaction:
    success: bool
    timestamp: float


class TelemetryAggregator:
    """Turns raw task counters and interaction events into PerformanceSamples."""

    def __init__(self, log_cap: int = INTERACTION_LOG_CAP, lookback_sec: float = BEHAVIOR_LOOKBACK_SEC):
        self.lookback_sec = float(lookback_sec)
        self._interactions: Deque[Interaction] = deque(maxlen=max(1, int(log_cap)))

    def summarize(self, counters: Mapping[str, Any] | None) -> PerformanceSample:
        """Normalize one completed task's counters.

        Never raises. Missing or garbage counters count as 0, and every ratio
        divides by ``max(denominator, 1)`` so an empty task yields zero rates.
        ``successRate`` is taken as given when present, otherwise derived from
        ``successes / attempts``.
        """

        counters = counters if isinstance(counters, Mapping) else {}
        interactions = _count(_lookup(counters, "interactions"))
        errors = _count(_lookup(counters, "errors"))
        steps_done = _count(_lookup(counters, "steps_completed"))
        total_steps = _count(_lookup(counters, "total_steps"))
        duration = _count(_lookup(counters, "duration_ms"))

        raw_rate = _lookup(counters, "success_rate")
        if raw_rate is not None:
            success_rate = max(0.0, min(1.0, _count(raw_rate)))
        else:
            success_rate = _safe_ratio(
                _count(_lookup(counters, "successes")), _count(_lookup(counters, "attempts"))
            )

        difficulty = counters.get("difficulty")
        assistance = counters.get("assistanceLevel", counters.get("assistance_level"))
        ts = counters.get("timestamp")
        return PerformanceSample(
            success_rate=success_rate,
            completion_time_ms=duration,
            error_rate=_safe_ratio(errors, interactions),
            efficiency=_safe_ratio(steps_done, total_steps),
            difficulty=difficulty if difficulty in _DIFFICULTIES else "medium",
            assistance_level=assistance if assistance in _ASSISTANCE else "moderate",
            timestamp=_count(ts) if ts is not None else time.time(),
        )

    # -- periodic behavioral sampling -------------------------------------

    def record_interaction(self, success: bool, timestamp: Optional[float] = None) -> None:
        ts = time.time() if timestamp is None else float(timestamp)
        self._interactions.append(Interaction(success=bool(success), timestamp=ts))

    def recent_interactions(self, now: Optional[float] = None) -> list[Interaction]:
        now = time.time() if now is None else float(now)
        cutoff = now - self.lookback_sec
        return [it for it in self._interactions if it.timestamp > cutoff]

    def behavioral_sample(self, now: Optional[float] = None) -> Optional[PerformanceSample]:
        """Summarize the lookback window, or None if nothing happened in it."""

        now = time.time() if now is None else float(now)
        recent = self.recent_interactions(now)
        if not recent:
            return None
        ok = sum(1 for it in recent if it.success)
        return PerformanceSample(
            success_rate=_safe_ratio(ok, len(recent)),
            completion_time_ms=0.0,
            error_rate=_safe_ratio(len(recent) - ok, len(recent)),
            efficiency=0.0,
            timestamp=now,
        )


__all__ = ["TelemetryAggregator", "Interaction"]
