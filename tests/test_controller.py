from __future__ import annotations

import pytest

from adapt_core import controller
from adapt_core.config import HISTORY_CAP, SAMPLING_INTERVAL_SEC, TREND_WINDOW
from adapt_core.errors import RuleConfigError
from adapt_core.history import AdaptationHistory

from tests.conftest import build_profile


def test_task_completion_decides_and_tracks_trends(ctx):
    decision = controller.on_task_completed(ctx, {"successRate": 0.2, "interactions": 10, "errors": 1})

    assert decision.source_signals.performance_category == "reduce"
    assert decision.resulting_effect_set.tasks.difficulty == "easy"
    assert len(ctx.history) == 1
    assert ctx.trends.values("successRate") == [0.2]
    assert ctx.trends.values("errorRate") == [0.1]


def test_deferred_feedback_waits_for_next_task(ctx):
    assert controller.submit_feedback(ctx, "task", {"difficulty": 5}, defer=True) is None
    assert len(ctx.pending_feedback) == 1
    assert len(ctx.history) == 0

    decision = controller.on_task_completed(ctx, {"successRate": 0.95})
    assert decision.source_signals.performance_category == "increase"
    assert decision.resulting_effect_set.tasks.difficulty == "easy"
    assert ctx.pending_feedback == []


def test_immediate_feedback_makes_feedback_only_decision(ctx):
    decision = controller.submit_feedback(ctx, "periodic", {"current_difficulty": 1, "need_help": True})

    assert decision is not None
    assert decision.sample is None
    assert decision.source_signals.performance_category == "none"
    assert decision.resulting_effect_set.tasks.difficulty == "hard"
    assert decision.resulting_effect_set.assistance.contextual_help is True
    assert decision.requests == ("assistance",)


def test_tick_respects_interval_and_interactions(ctx):
    assert controller.tick(ctx, now=100.0) is None

    for ok in (True, False, True, True):
        controller.record_interaction(ctx, ok, timestamp=95.0)
    first = controller.tick(ctx, now=100.0)
    assert first is not None
    assert first.sample.success_rate == pytest.approx(0.75)
    assert ctx.trends.values("successRate") == [0.75]
    assert ctx.trends.values("completionTimeMs") == []

    assert controller.tick(ctx, now=100.0 + ctx.sampling_interval_sec - 1) is None
    assert controller.tick(ctx, now=100.0 + ctx.sampling_interval_sec) is not None


def test_faults_become_recorded_noop_decisions(ctx, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("merge blew up")

    monkeypatch.setattr(ctx.merger, "decide", explode)
    controller.submit_feedback(ctx, "task", {"difficulty": 5}, defer=True)

    decision = controller.on_task_completed(ctx, {"successRate": 0.5})

    assert decision.fault == "RuntimeError: merge blew up"
    assert decision.resulting_effect_set.is_empty()
    assert ctx.history.latest() is decision
    assert len(ctx.pending_feedback) == 1


def test_update_profile_changes_triggered_rules(ctx):
    before = controller.on_task_completed(ctx, {"successRate": 0.5})
    assert before.source_signals.rules == ()

    controller.update_profile(ctx, {"interactionAbilities": {"fineMotor": 2}})
    after = controller.on_task_completed(ctx, {"successRate": 0.5})

    assert ctx.profile.fine_motor == 2
    assert "fine_motor" in [r.name for r in after.source_signals.rules]
    assert after.resulting_effect_set.objects.size.multiplier == 1.5


def test_snapshot_reports_state(ctx):
    for rate in (0.9, 0.7, 0.5):
        controller.on_task_completed(ctx, {"successRate": rate})

    snap = controller.snapshot(ctx)

    assert snap["userId"] == "user-1"
    assert snap["decisions"] == 3
    assert snap["trends"]["successRate"]["trend"] == "declining"
    assert snap["effectiveness"] == 0.0
    actions = [r["action"] for r in snap["recommendations"]]
    assert actions[0] == "reduce_difficulty"
    assert "review_adaptations" in actions
    assert len(snap["recentDecisions"]) == 3


def test_resumed_context_rebuilds_trends(ctx):
    for rate in (0.4, 0.6):
        controller.on_task_completed(ctx, {"successRate": rate})
    stored = AdaptationHistory.from_records(ctx.history.to_records())

    resumed = controller.new_context("user-1", build_profile(), history=stored)

    assert resumed.trends.values("successRate") == [0.4, 0.6]
    assert len(resumed.history) == 2


def test_resumed_context_replays_periodic_samples_with_their_own_metrics(ctx):
    controller.on_task_completed(
        ctx,
        {"successRate": 0.5, "duration": 200000, "stepsCompleted": 3, "totalSteps": 4, "timestamp": 10.0},
    )
    for ok in (True, True, False, True):
        controller.record_interaction(ctx, ok, timestamp=95.0)
    periodic = controller.tick(ctx, now=100.0)
    assert periodic.sample_kind == "periodic"

    stored = AdaptationHistory.from_records(ctx.history.to_records())
    resumed = controller.new_context("user-1", build_profile(), history=stored)

    assert resumed.history.latest().sample_kind == "periodic"
    assert ctx.trends.values("completionTimeMs") == [200000.0]
    assert ctx.trends.values("efficiency") == [0.75]
    for metric in ("completionTimeMs", "efficiency", "successRate", "errorRate"):
        assert resumed.trends.values(metric) == ctx.trends.values(metric)
    assert len(resumed.trends.values("successRate")) == 2


def test_every_deferred_directive_is_recorded(ctx):
    controller.submit_feedback(ctx, "task", {"difficulty": 5}, defer=True)
    controller.submit_feedback(ctx, "session", {"overall_difficulty": 1}, defer=True)

    decision = controller.on_task_completed(ctx, {"successRate": 0.5})

    assert [fb.scope for fb in decision.source_signals.feedback_all] == ["task", "session"]
    assert decision.source_signals.feedback.scope == "session"
    summary = ctx.history.feedback_summary()
    assert summary["total"] == 2
    assert summary["byScope"] == {"task": 1, "session": 1}

    restored = AdaptationHistory.from_records(ctx.history.to_records())
    assert restored.feedback_summary() == summary


def test_immediate_feedback_keeps_queued_directives(ctx):
    controller.submit_feedback(ctx, "task", {"difficulty": 5}, defer=True)
    decision = controller.submit_feedback(ctx, "periodic", {"current_difficulty": 1, "need_help": True})

    assert [fb.scope for fb in decision.source_signals.feedback_all] == ["task", "periodic"]
    assert ctx.history.feedback_summary()["byScope"] == {"task": 1, "periodic": 1}


def test_new_context_falls_back_on_malformed_settings():
    ctx = controller.new_context(
        "u", None, cfg={"HISTORY_CAP": "lots", "SAMPLING_INTERVAL_SEC": "soon", "TREND_WINDOW": None}
    )

    assert ctx.history.cap == HISTORY_CAP
    assert ctx.trends.window == TREND_WINDOW
    assert ctx.sampling_interval_sec == SAMPLING_INTERVAL_SEC

    tuned = controller.new_context("u", None, cfg={"HISTORY_CAP": "20", "SAMPLING_INTERVAL_SEC": 5})
    assert tuned.history.cap == 20
    assert tuned.sampling_interval_sec == 5.0


def test_new_context_rejects_bad_rules():
    with pytest.raises(RuleConfigError):
        controller.new_context("user-1", None, cfg={"rules": [{"ability": "nope", "value": 1}]})


def test_new_context_accepts_plain_profile_dict():
    ctx = controller.new_context("u", {"fineMotor": 12, "visual": "x"})
    assert ctx.profile.fine_motor == 10
    assert ctx.profile.visual == 5
