# adapt_core/trends.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, List, Mapping
import logging
import math

from .config import (
    TREND_THRESHOLD,
    TREND_WINDOW,
    EFFECTIVENESS_WINDOW,
    EFFECTIVENESS_REVIEW_BELOW,
)
from .types import PerformanceSample, Trend

log = logging.getLogger(__name__)

# Metrics where a falling value means the user is doing better.
LOWER_IS_BETTER = frozenset({"completionTimeMs", "errorRate"})

DEFAULT_METRICS = ("successRate", "completionTimeMs", "errorRate", "efficiency")


def relative_change(first: float, last: float) -> float:
    """(last - first) / |first|; a zero baseline maps to +/-inf or 0."""

    if first == 0:
        if last == 0:
            return 0.0
        return math.copysign(math.inf, last)
    return (last - first) / abs(first)


def classify_values(values: Iterable[float], threshold: float = TREND_THRESHOLD) -> Trend:
    """Label by the sign of the first-to-last change, for every metric."""

    vals = list(values)
    if len(vals) < 2:
        return "stable"
    change = relative_change(vals[0], vals[-1])
    if change > threshold:
        return "improving"
    if change < -threshold:
        return "declining"
    return "stable"


@dataclass(frozen=True)
class Recommendation:
    type: str
    action: str
    reason: str
    priority: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "action": self.action, "reason": self.reason, "priority": self.priority}


class TrendAnalyzer:
    """Bounded per-metric windows plus direction classification."""

    def __init__(
        self,
        window: int = TREND_WINDOW,
        threshold: float = TREND_THRESHOLD,
        lower_is_better: Iterable[str] = LOWER_IS_BETTER,
    ):
        self.window = max(1, int(window))
        self.threshold = float(threshold)
        self._lower_is_better = set(lower_is_better)
        self._windows: Dict[str, Deque[float]] = {}

    def track(self, metric: str, lower_is_better: bool = False) -> None:
        self._windows.setdefault(metric, deque(maxlen=self.window))
        if lower_is_better:
            self._lower_is_better.add(metric)
        else:
            self._lower_is_better.discard(metric)

    def push_sample(self, metric: str, value: float) -> None:
        try:
            val = float(value)
        except (TypeError, ValueError):
            log.warning("dropping non-numeric %s sample %r", metric, value)
            return
        if not math.isfinite(val):
            log.warning("dropping non-finite %s sample %r", metric, value)
            return
        self._windows.setdefault(metric, deque(maxlen=self.window)).append(val)

    def push_performance(self, sample: PerformanceSample, metrics: Iterable[str] = DEFAULT_METRICS) -> None:
        values = sample.metrics()
        for name in metrics:
            if name in values:
                self.push_sample(name, values[name])

    def values(self, metric: str) -> List[float]:
        return list(self._windows.get(metric, ()))

    def metrics(self) -> List[str]:
        return sorted(self._windows)

    def classify(self, metric: str) -> Trend:
        return classify_values(self._windows.get(metric, ()), threshold=self.threshold)

    def progress(self, metric: str) -> Trend:
        """Direction of the user's progress on ``metric``.

        Same as :meth:`classify` except for lower-is-better metrics, where a
        rising value means the user is doing worse.
        """

        trend = self.classify(metric)
        if metric in self._lower_is_better and trend != "stable":
            return "declining" if trend == "improving" else "improving"
        return trend

    def classify_all(self) -> Dict[str, Trend]:
        return {name: self.classify(name) for name in self.metrics()}

    @staticmethod
    def effectiveness(
        history: Any,
        window: int = EFFECTIVENESS_WINDOW,
    ) -> float:
        """Share of the trailing ``window`` decisions whose outcome was a success.

        Only decisions with a known outcome count toward the denominator. With
        nothing known yet the result is 0.0.
        """

        recent_fn = getattr(history, "recent", None)
        if callable(recent_fn):
            trailing = list(recent_fn(window))
        else:
            trailing = list(history)[-window:]
        known = [d for d in trailing if d.outcome_known]
        if not known:
            return 0.0
        return sum(1 for d in known if d.outcome_success) / len(known)

    def recommendations(self, effectiveness: float, has_known_outcomes: bool = True) -> List[Recommendation]:
        out: List[Recommendation] = []
        if self.progress("successRate") == "declining":
            out.append(
                Recommendation("difficulty", "reduce_difficulty", "Success rate is declining", "high")
            )
        if self.progress("completionTimeMs") == "declining":
            out.append(
                Recommendation("time", "extend_time_limits", "Completion time is increasing", "medium")
            )
        if has_known_outcomes and effectiveness < EFFECTIVENESS_REVIEW_BELOW:
            out.append(
                Recommendation("adaptation", "review_adaptations", "Current adaptations are not effective", "high")
            )
        return out

    def snapshot(self) -> Dict[str, Dict[str, object]]:
        return {
            name: {"values": self.values(name), "trend": self.classify(name), "progress": self.progress(name)}
            for name in self.metrics()
        }

    def restore(self, windows: Mapping[str, Iterable[float]]) -> None:
        for name, vals in (windows or {}).items():
            self._windows[name] = deque(maxlen=self.window)
            for v in vals:
                self.push_sample(name, v)


__all__ = [
    "TrendAnalyzer",
    "Recommendation",
    "classify_values",
    "relative_change",
    "LOWER_IS_BETTER",
    "DEFAULT_METRICS",
]
