"""Explicit user feedback -> FeedbackDirective -> effect overrides.

Three prompt shapes feed the interpreter:

* task check-in: ``difficulty``, ``frustration``, ``satisfaction``, ``assistance``
* session end: ``overall_difficulty``, ``enjoyment``, ``learning``, ``recommendations``
* periodic check-in: ``current_difficulty``, ``need_help``

All ratings are 1..5. Anything missing, non-numeric or out of range is dropped
rather than guessed, so a half-filled prompt still produces a directive for the
answers that are usable.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging
import math
import time

from .config import RATING_HIGH, RATING_LOW
from .effects import EffectSet, effect_path
from .types import FeedbackDirective, FeedbackScope

log = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on", "y"}

# response key carrying the difficulty rating, per scope
_DIFFICULTY_KEYS = {
    "task": ("difficulty", "difficultyRating"),
    "session": ("overall_difficulty", "difficulty", "difficultyRating"),
    "periodic": ("current_difficulty", "difficulty", "difficultyRating"),
}


def _rating(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    try:
        val = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(val) or val != int(val) or not 1 <= val <= 5:
        return None
    return int(val)


def _flag(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    return isinstance(raw, str) and raw.strip().lower() in _TRUTHY


def _first(responses: Mapping[str, Any], keys: Tuple[str, ...]) -> Optional[int]:
    for key in keys:
        if key in responses:
            val = _rating(responses[key])
            if val is not None:
                return val
    return None


class FeedbackInterpreter:
    """Converts prompt responses to directives and directives to effect overrides."""

    def interpret(
        self,
        scope: str,
        responses: Mapping[str, Any] | None,
        timestamp: Optional[float] = None,
    ) -> FeedbackDirective:
        scope_v: FeedbackScope = scope if scope in _DIFFICULTY_KEYS else "task"  # type: ignore[assignment]
        if scope_v != scope:
            log.warning("unknown feedback scope %r; treating as task", scope)
        responses = responses if isinstance(responses, Mapping) else {}

        difficulty = _first(responses, _DIFFICULTY_KEYS[scope_v])
        frustration = _first(responses, ("frustration",))
        assistance = _first(responses, ("assistance", "assistanceRating"))
        need_help = _flag(responses.get("need_help", responses.get("needHelp", False)))

        requests: List[str] = []
        satisfaction = _first(responses, ("satisfaction",))
        enjoyment = _first(responses, ("enjoyment",))
        learning = _first(responses, ("learning",))
        if (satisfaction is not None and satisfaction <= RATING_LOW) or (
            enjoyment is not None and enjoyment <= RATING_LOW
        ):
            requests.append("scenario_adjustment")
        if learning is not None and learning <= RATING_LOW:
            requests.append("learning_adjustment")
        if need_help:
            requests.append("assistance")
        note = responses.get("recommendations")
        if isinstance(note, str) and note.strip():
            requests.append("recommendations")
            note = note.strip()
        else:
            note = None

        return FeedbackDirective(
            scope=scope_v,
            difficulty_rating=difficulty,
            frustration=frustration,
            assistance_rating=assistance,
            need_help=need_help,
            requests=tuple(requests),
            note=note,
            timestamp=time.time() if timestamp is None else float(timestamp),
        )

    def task_feedback(self, responses: Mapping[str, Any] | None, timestamp: Optional[float] = None) -> FeedbackDirective:
        return self.interpret("task", responses, timestamp)

    def session_feedback(self, responses: Mapping[str, Any] | None, timestamp: Optional[float] = None) -> FeedbackDirective:
        return self.interpret("session", responses, timestamp)

    def periodic_feedback(self, responses: Mapping[str, Any] | None, timestamp: Optional[float] = None) -> FeedbackDirective:
        return self.interpret("periodic", responses, timestamp)

    @staticmethod
    def overrides(directive: FeedbackDirective) -> List[Tuple[str, EffectSet]]:
        """Effect layers implied by a directive, in application order.

        Later layers win: the assistance rating goes first so that the
        difficulty rating and then frustration keep the final say over
        ``assistance.level``.
        """

        layers: List[Tuple[str, EffectSet]] = []

        if directive.assistance_rating is not None:
            if directive.assistance_rating <= RATING_LOW:
                layers.append(("assistance_increase", _assistance_increase()))
            elif directive.assistance_rating >= RATING_HIGH:
                layers.append(("assistance_decrease", _assistance_decrease()))

        if directive.need_help:
            eff = EffectSet()
            eff.assistance.level = "extensive"
            eff.assistance.contextual_help = True
            layers.append(("need_help", eff))

        if directive.difficulty_rating is not None:
            if directive.difficulty_rating >= RATING_HIGH:
                eff = EffectSet()
                eff.tasks.difficulty = "easy"
                eff.assistance.level = "extensive"
                layers.append(("difficulty_decrease", eff))
            elif directive.difficulty_rating <= RATING_LOW:
                eff = EffectSet()
                eff.tasks.difficulty = "hard"
                eff.assistance.level = "minimal"
                layers.append(("difficulty_increase", eff))

        if directive.frustration is not None and directive.frustration >= RATING_HIGH:
            eff = EffectSet()
            eff.assistance.level = "extensive"
            layers.append(("frustration", eff))

        return layers

    def apply(self, effects: EffectSet, directive: FeedbackDirective, key_sources: Dict[str, str]) -> List[str]:
        """Overlay a directive onto ``effects`` in place; return the layer names applied."""

        applied: List[str] = []
        for name, layer in self.overrides(directive):
            for ns, attr in effects.overlay(layer):
                key_sources[effect_path(ns, attr)] = f"feedback:{directive.scope}:{name}"
            applied.append(name)
        return applied


def _assistance_increase() -> EffectSet:
    eff = EffectSet()
    eff.assistance.level = "extensive"
    eff.assistance.step_by_step_guidance = True
    eff.assistance.visual_instructions = True
    eff.assistance.contextual_help = True
    return eff


def _assistance_decrease() -> EffectSet:
    eff = EffectSet()
    eff.assistance.level = "minimal"
    eff.assistance.step_by_step_guidance = False
    eff.assistance.visual_instructions = False
    eff.assistance.contextual_help = False
    return eff


__all__ = ["FeedbackInterpreter"]
