# adapt_core/merger.py
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence
import logging
import time

from .config import (
    SUCCESS_THRESHOLD,
    FAILURE_THRESHOLD,
    SLOW_COMPLETION_MS,
    HIGH_ERROR_RATE,
    DEBUG_TRACE,
    TRACE_FIELDS,
)
from .dispatch import EffectDispatcher
from .effects import EffectSet, effect_path
from .feedback import FeedbackInterpreter
from .history import AdaptationHistory
from .rules import RuleEngine
from .trends import TrendAnalyzer
from .types import (
    AbilityProfile,
    AdaptationDecision,
    FeedbackDirective,
    PerformanceCategory,
    PerformanceSample,
    SampleKind,
    SourceSignals,
    Trend,
)

log = logging.getLogger(__name__)


def _emit_trace(**values: object) -> None:
    if not DEBUG_TRACE:
        return
    ordered = []
    for key in TRACE_FIELDS:
        if key in values:
            ordered.append(f"{key}={values[key]}")
    if ordered:
        log.info("trace %s", " ".join(ordered))


def performance_category(
    sample: Optional[PerformanceSample],
    failure: float = FAILURE_THRESHOLD,
    success: float = SUCCESS_THRESHOLD,
) -> PerformanceCategory:
    if sample is None:
        return "none"
    if sample.success_rate < failure:
        return "reduce"
    if sample.success_rate > success:
        return "increase"
    return "none"


def performance_overlay(sample: Optional[PerformanceSample], category: PerformanceCategory) -> EffectSet:
    eff = EffectSet()
    if category == "reduce":
        eff.tasks.difficulty = "easy"
        eff.assistance.level = "extensive"
    elif category == "increase":
        eff.tasks.difficulty = "hard"
        eff.assistance.level = "minimal"
    if sample is not None:
        if sample.completion_time_ms > SLOW_COMPLETION_MS:
            eff.tasks.time_limit = "extended"
        if sample.error_rate > HIGH_ERROR_RATE:
            eff.interface.error_tolerance = "high"
            eff.assistance.error_recovery = True
    return eff


class DecisionMerger:
    """Runs one full adaptation decision.

    Order of application (each later layer overwrites the keys it sets):

    1. ability rules, ascending priority then declaration order
    2. performance category and threshold overlays
    3. feedback directives, oldest first

    The decision is appended to the history and, if a dispatcher is attached,
    fanned out to the namespace collaborators as the very last step.
    """

    def __init__(
        self,
        rules: Optional[RuleEngine] = None,
        feedback: Optional[FeedbackInterpreter] = None,
        dispatcher: Optional[EffectDispatcher] = None,
    ):
        self.rules = rules or RuleEngine()
        self.feedback = feedback or FeedbackInterpreter()
        self.dispatcher = dispatcher

    def decide(
        self,
        profile: AbilityProfile,
        sample: Optional[PerformanceSample],
        pending_feedback: Sequence[FeedbackDirective] | FeedbackDirective | None,
        history: AdaptationHistory,
        trends: Optional[Mapping[str, Trend]] = None,
        user_id: str = "",
        sample_kind: SampleKind = "task",
    ) -> AdaptationDecision:
        if isinstance(pending_feedback, FeedbackDirective):
            directives: List[FeedbackDirective] = [pending_feedback]
        else:
            directives = list(pending_feedback or ())

        if sample is not None:
            labeled = history.label_latest(sample)
            if labeled is not None:
                log.debug(
                    "labeled decision @%.3f success=%s", labeled.timestamp, labeled.outcome_success
                )

        category = performance_category(sample)

        triggered = self.rules.evaluate(profile)
        merged = self.rules.merge(triggered)
        effects = merged.effects
        key_sources: Dict[str, str] = dict(merged.key_sources)

        for ns, attr in effects.overlay(performance_overlay(sample, category)):
            key_sources[effect_path(ns, attr)] = f"performance:{category}"

        applied: List[str] = []
        for directive in directives:
            applied.extend(self.feedback.apply(effects, directive, key_sources))

        decision = AdaptationDecision(
            source_signals=SourceSignals(
                rules=tuple(tr.rule.ref() for tr in triggered),
                performance_category=category,
                feedback=directives[-1] if directives else None,
                trends=dict(trends or {}),
                feedback_all=tuple(directives),
            ),
            resulting_effect_set=effects,
            timestamp=sample.timestamp if sample is not None else time.time(),
            sample=sample,
            key_sources=key_sources,
            requests=_merge_requests(d.requests for d in directives),
            sample_kind=sample_kind,
        )
        history.append(decision)

        _emit_trace(
            user_id=user_id or "-",
            performance_category=category,
            rules=",".join(tr.name for tr in triggered) or "-",
            feedback=",".join(applied) or "-",
            difficulty=effects.tasks.difficulty or "-",
            assistance=effects.assistance.level or "-",
            effectiveness=f"{TrendAnalyzer.effectiveness(history):.2f}",
        )

        if self.dispatcher is not None:
            failed = self.dispatcher.dispatch(decision)
            if failed:
                log.info("decision dispatched with failing collaborators: %s", ",".join(failed))
        return decision


def _merge_requests(groups: Iterable[Iterable[str]]) -> tuple[str, ...]:
    seen: List[str] = []
    for group in groups:
        for req in group:
            if req not in seen:
                seen.append(req)
    return tuple(seen)


__all__ = ["DecisionMerger", "performance_category", "performance_overlay"]
