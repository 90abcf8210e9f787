from __future__ import annotations

from adapt_core.effects import EffectSet
from adapt_core.history import AdaptationHistory
from adapt_core.types import AdaptationDecision, FeedbackDirective, SourceSignals

from tests.conftest import build_decision, build_sample


def test_history_keeps_last_hundred_in_order():
    history = AdaptationHistory(cap=100)
    for i in range(150):
        history.append(build_decision(timestamp=float(i)))

    stamps = [d.timestamp for d in history]
    assert len(history) == 100
    assert stamps == [float(i) for i in range(50, 150)]
    assert [d.timestamp for d in history.recent(3)] == [147.0, 148.0, 149.0]
    assert history.recent(0) == []


def test_outcome_is_labeled_once():
    decision = build_decision(0.5)
    assert decision.label_outcome(True) is True
    assert decision.label_outcome(False) is False
    assert decision.outcome_success is True


def test_label_latest_skips_labeled_and_sampleless_decisions():
    history = AdaptationHistory()
    old = build_decision(0.5, timestamp=1.0)
    labeled = build_decision(0.9, timestamp=2.0, outcome_known=True, outcome_success=False)
    no_sample = build_decision(None, timestamp=3.0)
    for d in (old, labeled, no_sample):
        history.append(d)

    assert history.label_latest(build_sample(0.6)) is old
    assert old.outcome_success is True
    assert labeled.outcome_success is False
    assert history.label_latest(build_sample(0.1)) is None


def test_feedback_summary():
    history = AdaptationHistory()
    for scope, rating in (("task", 4), ("task", None), ("session", 2)):
        fb = FeedbackDirective(scope=scope, difficulty_rating=rating)
        history.append(
            AdaptationDecision(
                source_signals=SourceSignals(feedback=fb, feedback_all=(fb,)),
                resulting_effect_set=EffectSet(),
            )
        )
    history.append(build_decision())

    summary = history.feedback_summary()
    assert summary["total"] == 3
    assert summary["averageDifficulty"] == 3.0
    assert summary["byScope"] == {"task": 2, "session": 1}
    assert AdaptationHistory().feedback_summary()["averageDifficulty"] is None


def test_records_restore_ledger():
    history = AdaptationHistory()
    fb = FeedbackDirective(scope="periodic", need_help=True, requests=("assistance",))
    eff = EffectSet()
    eff.set("environment", "navigationSpeed", {"multiplier": 0.8, "min": 0.5, "max": 1.5})
    eff.tasks.difficulty = "easy"
    history.append(
        AdaptationDecision(
            source_signals=SourceSignals(
                performance_category="reduce",
                feedback=fb,
                trends={"successRate": "declining"},
                feedback_all=(fb,),
            ),
            resulting_effect_set=eff,
            timestamp=5.0,
            sample=build_sample(0.2, 5.0),
            key_sources={"tasks.difficulty": "performance:reduce"},
            requests=("assistance",),
        )
    )
    history.recent(1)[0].label_outcome(False)

    restored = AdaptationHistory.from_records(history.to_records() + ["garbage"])
    assert len(restored) == 1
    got = restored.latest()
    assert got.to_dict() == history.latest().to_dict()
    assert got.resulting_effect_set.environment.navigation_speed.apply(1.0) == 0.8


def test_records_without_feedback_all_fall_back_to_single_directive():
    record = build_decision().to_dict()
    record["sourceSignals"]["feedback"] = FeedbackDirective(scope="task", difficulty_rating=4).to_dict()
    del record["sourceSignals"]["feedbackAll"]
    del record["sampleKind"]

    restored = AdaptationHistory.from_records([record])
    got = restored.latest()
    assert [fb.scope for fb in got.source_signals.feedback_all] == ["task"]
    assert got.sample_kind == "task"
    assert restored.feedback_summary()["total"] == 1
