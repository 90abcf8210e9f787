from __future__ import annotations

from adapt_core.effects import EffectSet
from adapt_core.feedback import FeedbackInterpreter
from adapt_core.types import FeedbackDirective


def test_task_responses_to_directive():
    d = FeedbackInterpreter().task_feedback(
        {"difficulty": 5, "frustration": "2", "satisfaction": 1, "assistance": 4}, timestamp=7.0
    )
    assert d.scope == "task"
    assert (d.difficulty_rating, d.frustration, d.assistance_rating) == (5, 2, 4)
    assert d.requests == ("scenario_adjustment",)
    assert d.timestamp == 7.0


def test_invalid_ratings_become_none():
    d = FeedbackInterpreter().task_feedback({"difficulty": 7, "frustration": "very", "assistance": True})
    assert d.difficulty_rating is None
    assert d.frustration is None
    assert d.assistance_rating is None
    assert d.is_empty()


def test_session_and_periodic_scopes():
    interp = FeedbackInterpreter()
    session = interp.session_feedback(
        {"overall_difficulty": 2, "enjoyment": 2, "learning": 1, "recommendations": "  more breaks  "}
    )
    assert session.difficulty_rating == 2
    assert session.requests == ("scenario_adjustment", "learning_adjustment", "recommendations")
    assert session.note == "more breaks"

    periodic = interp.periodic_feedback({"current_difficulty": 3, "need_help": "yes"})
    assert periodic.difficulty_rating == 3
    assert periodic.need_help is True
    assert periodic.requests == ("assistance",)


def test_unknown_scope_falls_back_to_task():
    d = FeedbackInterpreter().interpret("weekly", {"difficulty": 4})
    assert d.scope == "task"
    assert d.difficulty_rating == 4


def test_difficulty_rating_overlay():
    interp = FeedbackInterpreter()
    hard = EffectSet()
    interp.apply(hard, FeedbackDirective(scope="task", difficulty_rating=4), {})
    assert (hard.tasks.difficulty, hard.assistance.level) == ("easy", "extensive")

    easy = EffectSet()
    interp.apply(easy, FeedbackDirective(scope="task", difficulty_rating=1), {})
    assert (easy.tasks.difficulty, easy.assistance.level) == ("hard", "minimal")

    middle = EffectSet()
    assert interp.apply(middle, FeedbackDirective(scope="task", difficulty_rating=3), {}) == []
    assert middle.is_empty()


def test_frustration_forces_extensive_assistance_over_difficulty_rating():
    eff = EffectSet()
    sources: dict[str, str] = {}
    applied = FeedbackInterpreter().apply(
        eff, FeedbackDirective(scope="task", difficulty_rating=1, frustration=5), sources
    )
    assert applied == ["difficulty_increase", "frustration"]
    assert eff.tasks.difficulty == "hard"
    assert eff.assistance.level == "extensive"
    assert sources["assistance.level"] == "feedback:task:frustration"
    assert sources["tasks.difficulty"] == "feedback:task:difficulty_increase"


def test_assistance_rating_yields_to_difficulty_rating_on_level():
    eff = EffectSet()
    FeedbackInterpreter().apply(
        eff, FeedbackDirective(scope="task", assistance_rating=1, difficulty_rating=1), {}
    )
    assert eff.assistance.level == "minimal"
    assert eff.assistance.step_by_step_guidance is True
    assert eff.assistance.contextual_help is True

    eff = EffectSet()
    FeedbackInterpreter().apply(eff, FeedbackDirective(scope="task", assistance_rating=5), {})
    assert eff.assistance.level == "minimal"
    assert eff.assistance.visual_instructions is False


def test_need_help_turns_on_contextual_help():
    eff = EffectSet()
    FeedbackInterpreter().apply(eff, FeedbackDirective(scope="periodic", need_help=True), {})
    assert eff.assistance.contextual_help is True
    assert eff.assistance.level == "extensive"
