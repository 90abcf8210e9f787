from __future__ import annotations

from adapt_core.dispatch import EffectDispatcher
from adapt_core.effects import EffectSet, TaskEffects
from adapt_core.history import AdaptationHistory
from adapt_core.merger import DecisionMerger, performance_category
from adapt_core.rules import AdaptationRule, RuleEngine
from adapt_core.types import FeedbackDirective

from tests.conftest import build_profile, build_sample


def test_performance_category_thresholds():
    assert performance_category(None) == "none"
    assert performance_category(build_sample(0.29)) == "reduce"
    assert performance_category(build_sample(0.3)) == "none"
    assert performance_category(build_sample(0.8)) == "none"
    assert performance_category(build_sample(0.81)) == "increase"


def test_end_to_end_attention_and_poor_performance():
    history = AdaptationHistory()
    decision = DecisionMerger().decide(build_profile(attention=3), build_sample(0.2), [], history)

    eff = decision.resulting_effect_set
    assert eff.tasks.difficulty == "easy"
    assert eff.assistance.level == "extensive"
    assert eff.environment.frequent_breaks is True
    assert decision.source_signals.performance_category == "reduce"
    assert [r.name for r in decision.source_signals.rules] == ["attention"]
    assert decision.key_sources["tasks.difficulty"] == "performance:reduce"
    assert decision.key_sources["environment.frequentBreaks"] == "rule:attention"
    assert list(history) == [decision]


def test_feedback_beats_performance():
    decision = DecisionMerger().decide(
        build_profile(),
        build_sample(0.95),
        FeedbackDirective(scope="task", difficulty_rating=5),
        AdaptationHistory(),
    )
    assert decision.source_signals.performance_category == "increase"
    assert decision.resulting_effect_set.tasks.difficulty == "easy"
    assert decision.resulting_effect_set.assistance.level == "extensive"
    assert decision.source_signals.feedback.difficulty_rating == 5


def test_performance_beats_ability_rules():
    pushy = AdaptationRule(
        name="always_hard",
        condition=lambda p: True,
        effects=EffectSet(tasks=TaskEffects(difficulty="hard", repetition=True)),
        priority="high",
    )
    merger = DecisionMerger(rules=RuleEngine([pushy]))

    decision = merger.decide(build_profile(), build_sample(0.1), [], AdaptationHistory())
    assert decision.resulting_effect_set.tasks.difficulty == "easy"
    assert decision.resulting_effect_set.tasks.repetition is True

    neutral = merger.decide(build_profile(), build_sample(0.5), [], AdaptationHistory())
    assert neutral.resulting_effect_set.tasks.difficulty == "hard"


def test_slow_and_error_prone_samples_add_overlays():
    decision = DecisionMerger().decide(
        build_profile(),
        build_sample(0.5, completion_time_ms=400_000, error_rate=0.5),
        [],
        AdaptationHistory(),
    )
    eff = decision.resulting_effect_set
    assert eff.tasks.time_limit == "extended"
    assert eff.interface.error_tolerance == "high"
    assert eff.assistance.error_recovery is True
    assert eff.tasks.difficulty is None


def test_retroactive_outcome_labeling():
    merger = DecisionMerger()
    history = AdaptationHistory()
    profile = build_profile()

    first = merger.decide(profile, build_sample(0.5, 1.0), [], history)
    assert not first.outcome_known

    second = merger.decide(profile, build_sample(0.6, 2.0), [], history)
    assert (first.outcome_known, first.outcome_success) == (True, True)
    assert not second.outcome_known

    merger.decide(profile, build_sample(0.4, 3.0), [], history)
    assert (second.outcome_known, second.outcome_success) == (True, False)
    assert first.outcome_success is True


def test_feedback_only_decision_does_not_label():
    merger = DecisionMerger()
    history = AdaptationHistory()
    first = merger.decide(build_profile(), build_sample(0.5), [], history)

    fb = merger.decide(build_profile(), None, [FeedbackDirective(scope="task", frustration=5)], history)

    assert fb.source_signals.performance_category == "none"
    assert fb.sample is None
    assert not first.outcome_known

    merger.decide(build_profile(), build_sample(0.7), [], history)
    assert first.outcome_success is True


def test_requests_are_collected_in_order():
    decision = DecisionMerger().decide(
        build_profile(),
        None,
        [
            FeedbackDirective(scope="task", requests=("scenario_adjustment",)),
            FeedbackDirective(scope="periodic", need_help=True, requests=("assistance", "scenario_adjustment")),
        ],
        AdaptationHistory(),
    )
    assert decision.requests == ("scenario_adjustment", "assistance")
    assert decision.source_signals.feedback.scope == "periodic"


def test_dispatch_isolates_failing_collaborators():
    seen: dict[str, dict] = {}
    requests: list[tuple] = []

    def collect(ns, payload):
        seen[ns] = payload

    def broken(ns, payload):
        raise RuntimeError("renderer offline")

    dispatcher = EffectDispatcher()
    for ns in ("environment", "objects", "tasks", "interface", "assistance"):
        dispatcher.subscribe(ns, collect)
    dispatcher.subscribe("tasks", broken)
    dispatcher.on_requests(lambda reqs, decision: requests.append(reqs))

    merger = DecisionMerger(dispatcher=dispatcher)
    decision = merger.decide(
        build_profile(attention=3),
        build_sample(0.2),
        [FeedbackDirective(scope="periodic", need_help=True, requests=("assistance",))],
        AdaptationHistory(),
    )

    assert set(seen) == {"environment", "objects", "tasks", "interface", "assistance"}
    assert seen["environment"]["frequentBreaks"] is True
    assert seen["tasks"]["difficulty"] == "easy"
    assert seen["objects"] == {}
    assert requests == [("assistance",)]
    assert dispatcher.dispatch(decision) == ["tasks"]
