"""Per-user adaptation controller.

Everything stateful about one user's session lives on a :class:`ControllerContext`
that the caller owns and passes to each operation. There are no module-level
singletons, so two sessions never share trend windows or history.

Every trigger (task completion, feedback, periodic tick) holds the context lock
for its whole run and never raises: a failure is logged and recorded as a
no-op decision carrying the fault text.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union
import logging
import threading
import time

from .config import HISTORY_CAP, SAMPLING_INTERVAL_SEC, TREND_WINDOW, cfg_float, cfg_int
from .dispatch import EffectDispatcher
from .effects import EffectSet
from .feedback import FeedbackInterpreter
from .history import AdaptationHistory
from .merger import DecisionMerger
from .rules import RuleEngine, recommend_scenarios
from .telemetry import TelemetryAggregator
from .trends import DEFAULT_METRICS, TrendAnalyzer
from .types import AbilityProfile, AdaptationDecision, FeedbackDirective, SourceSignals

log = logging.getLogger(__name__)

# Behavioral samples carry no timing or step data.
_BEHAVIOR_METRICS = ("successRate", "errorRate")


def _metrics_for(kind: str) -> tuple[str, ...]:
    return _BEHAVIOR_METRICS if kind == "periodic" else DEFAULT_METRICS


@dataclass
class ControllerContext:
    user_id: str
    profile: AbilityProfile
    rules: RuleEngine
    merger: DecisionMerger
    history: AdaptationHistory
    trends: TrendAnalyzer
    telemetry: TelemetryAggregator
    dispatcher: EffectDispatcher
    sampling_interval_sec: float = SAMPLING_INTERVAL_SEC
    pending_feedback: List[FeedbackDirective] = field(default_factory=list)
    last_periodic_at: Optional[float] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def new_context(
    user_id: str,
    profile: Union[AbilityProfile, Mapping[str, Any], None] = None,
    cfg: Optional[Mapping[str, Any]] = None,
    history: Optional[AdaptationHistory] = None,
    dispatcher: Optional[EffectDispatcher] = None,
) -> ControllerContext:
    """Build a fresh context. Malformed declarative rules raise RuleConfigError."""

    cfg = cfg or {}
    rules = RuleEngine.from_config(cfg)
    dispatcher = dispatcher or EffectDispatcher()
    if not isinstance(profile, AbilityProfile):
        profile = AbilityProfile.from_dict(profile)
    ctx = ControllerContext(
        user_id=str(user_id),
        profile=profile,
        rules=rules,
        merger=DecisionMerger(rules=rules, feedback=FeedbackInterpreter(), dispatcher=dispatcher),
        history=history if history is not None else AdaptationHistory(cap=cfg_int(cfg, "HISTORY_CAP", HISTORY_CAP)),
        trends=TrendAnalyzer(window=cfg_int(cfg, "TREND_WINDOW", TREND_WINDOW)),
        telemetry=TelemetryAggregator(),
        dispatcher=dispatcher,
        sampling_interval_sec=cfg_float(cfg, "SAMPLING_INTERVAL_SEC", SAMPLING_INTERVAL_SEC),
    )
    # Rebuild trend windows from the stored ledger so a resumed session keeps its direction.
    for decision in ctx.history:
        if decision.sample is not None:
            ctx.trends.push_performance(decision.sample, metrics=_metrics_for(decision.sample_kind))
    return ctx


def _noop(ctx: ControllerContext, exc: BaseException) -> AdaptationDecision:
    decision = AdaptationDecision(
        source_signals=SourceSignals(),
        resulting_effect_set=EffectSet(),
        fault=f"{type(exc).__name__}: {exc}",
    )
    try:
        ctx.history.append(decision)
    except Exception:
        log.exception("could not record no-op decision for %s", ctx.user_id)
    return decision


def _decide(
    ctx: ControllerContext, sample, directives: List[FeedbackDirective], sample_kind: str = "task"
) -> AdaptationDecision:
    return ctx.merger.decide(
        ctx.profile,
        sample,
        directives,
        ctx.history,
        trends=ctx.trends.classify_all(),
        user_id=ctx.user_id,
        sample_kind=sample_kind,
    )


def on_task_completed(ctx: ControllerContext, counters: Mapping[str, Any] | None) -> AdaptationDecision:
    """Summarize a finished task and decide. Consumes any deferred feedback."""

    with ctx.lock:
        try:
            sample = ctx.telemetry.summarize(counters)
            ctx.trends.push_performance(sample)
            decision = _decide(ctx, sample, list(ctx.pending_feedback))
            ctx.pending_feedback.clear()
            return decision
        except Exception as exc:
            log.exception("task decision failed for %s", ctx.user_id)
            return _noop(ctx, exc)


def submit_feedback(
    ctx: ControllerContext,
    scope: str,
    responses: Mapping[str, Any] | None,
    defer: bool = False,
    timestamp: Optional[float] = None,
) -> Optional[AdaptationDecision]:
    """Interpret a prompt's answers.

    With ``defer`` the directive waits for the next task decision and None is
    returned; otherwise a feedback-only decision is made right away.
    """

    with ctx.lock:
        try:
            directive = ctx.merger.feedback.interpret(scope, responses, timestamp)
            if defer:
                ctx.pending_feedback.append(directive)
                return None
            decision = _decide(ctx, None, list(ctx.pending_feedback) + [directive])
            ctx.pending_feedback.clear()
            return decision
        except Exception as exc:
            log.exception("feedback decision failed for %s", ctx.user_id)
            return _noop(ctx, exc)


def record_interaction(ctx: ControllerContext, success: bool, timestamp: Optional[float] = None) -> None:
    with ctx.lock:
        ctx.telemetry.record_interaction(success, timestamp)


def tick(ctx: ControllerContext, now: Optional[float] = None) -> Optional[AdaptationDecision]:
    """Periodic behavioral sampling.

    Decides only when the sampling interval has elapsed since the previous
    periodic sample and interactions were logged within the lookback window.
    """

    now = time.time() if now is None else float(now)
    with ctx.lock:
        try:
            if ctx.last_periodic_at is not None and now - ctx.last_periodic_at < ctx.sampling_interval_sec:
                return None
            sample = ctx.telemetry.behavioral_sample(now)
            if sample is None:
                return None
            ctx.last_periodic_at = now
            ctx.trends.push_performance(sample, metrics=_metrics_for("periodic"))
            return _decide(ctx, sample, [], sample_kind="periodic")
        except Exception as exc:
            log.exception("periodic decision failed for %s", ctx.user_id)
            return _noop(ctx, exc)


def update_profile(ctx: ControllerContext, profile: Union[AbilityProfile, Mapping[str, Any]]) -> AbilityProfile:
    if not isinstance(profile, AbilityProfile):
        profile = AbilityProfile.from_dict(profile)
    with ctx.lock:
        ctx.profile = profile
    log.info("profile updated for %s", ctx.user_id)
    return profile


def snapshot(ctx: ControllerContext, recent: int = 10) -> Dict[str, Any]:
    with ctx.lock:
        effectiveness = TrendAnalyzer.effectiveness(ctx.history)
        recs = ctx.trends.recommendations(effectiveness, has_known_outcomes=ctx.history.has_known_outcomes())
        latest = ctx.history.latest()
        return {
            "userId": ctx.user_id,
            "profile": ctx.profile.to_dict(),
            "currentEffects": latest.resulting_effect_set.to_dict() if latest else EffectSet().to_dict(),
            "trends": ctx.trends.snapshot(),
            "effectiveness": effectiveness,
            "recommendations": [r.to_dict() for r in recs],
            "scenarios": recommend_scenarios(ctx.profile),
            "feedbackSummary": ctx.history.feedback_summary(),
            "pendingFeedback": len(ctx.pending_feedback),
            "decisions": len(ctx.history),
            "recentDecisions": [d.to_dict() for d in ctx.history.recent(recent)],
        }


__all__ = [
    "ControllerContext",
    "new_context",
    "on_task_completed",
    "submit_feedback",
    "record_interaction",
    "tick",
    "update_profile",
    "snapshot",
]
