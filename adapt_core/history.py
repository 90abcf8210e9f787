# adapt_core/history.py
from __future__ import annotations

from collections import Counter, deque
from typing import Any, Deque, Dict, Iterable, Iterator, List, Mapping, Optional
import logging

from .config import HISTORY_CAP
from .types import AdaptationDecision, PerformanceSample

log = logging.getLogger(__name__)


class AdaptationHistory:
    """Bounded, chronological ledger of AdaptationDecisions.

    Entries are never rewritten except for the outcome fields, which are set
    exactly once by :meth:`label_latest`. The oldest entry is evicted when the
    ledger is full.
    """

    def __init__(self, cap: int = HISTORY_CAP, decisions: Iterable[AdaptationDecision] = ()):
        self.cap = max(1, int(cap))
        self._items: Deque[AdaptationDecision] = deque(decisions, maxlen=self.cap)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[AdaptationDecision]:
        return iter(list(self._items))

    def append(self, decision: AdaptationDecision) -> None:
        self._items.append(decision)

    def recent(self, n: int) -> List[AdaptationDecision]:
        if n <= 0:
            return []
        items = list(self._items)
        return items[-n:]

    def latest(self) -> Optional[AdaptationDecision]:
        return self._items[-1] if self._items else None

    def label_latest(self, sample: PerformanceSample) -> Optional[AdaptationDecision]:
        """Label the newest decision that still lacks an outcome.

        Success means the new sample did not regress against the sample that
        drove the decision. Decisions made without a sample (feedback-only or
        faulted) cannot be compared and are skipped.
        """

        for decision in reversed(self._items):
            if decision.outcome_known:
                continue
            if decision.sample is None:
                continue
            decision.label_outcome(sample.success_rate >= decision.sample.success_rate)
            return decision
        return None

    def has_known_outcomes(self) -> bool:
        return any(d.outcome_known for d in self._items)

    def feedback_summary(self, recent: int = 10) -> Dict[str, Any]:
        directives = [fb for d in self._items for fb in d.source_signals.feedback_all]
        ratings = [
            fb.difficulty_rating for fb in directives[-recent:] if fb.difficulty_rating is not None
        ]
        return {
            "total": len(directives),
            "averageDifficulty": (sum(ratings) / len(ratings)) if ratings else None,
            "byScope": dict(Counter(fb.scope for fb in directives)),
        }

    def to_records(self) -> List[Dict[str, Any]]:
        return [d.to_dict() for d in self._items]

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]] | None, cap: int = HISTORY_CAP) -> "AdaptationHistory":
        decisions: List[AdaptationDecision] = []
        for idx, rec in enumerate(records or []):
            try:
                decisions.append(AdaptationDecision.from_dict(rec))
            except Exception:
                log.warning("skipping unreadable history record #%d", idx, exc_info=True)
        return cls(cap=cap, decisions=decisions)


__all__ = ["AdaptationHistory"]
