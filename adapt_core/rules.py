# adapt_core/rules.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Tuple
import logging
import operator

from .config import WEAK_ABILITY_MAX
from .effects import (
    AssistanceEffects,
    Bounded,
    EffectSet,
    EnvironmentEffects,
    InterfaceEffects,
    ObjectEffects,
    TaskEffects,
    effect_path,
)
from .errors import RuleConfigError, UnknownEffectKey
from .types import ABILITY_DIMENSIONS, PRIORITY_RANK, AbilityProfile, Priority, RuleRef

log = logging.getLogger(__name__)

Condition = Callable[[AbilityProfile], bool]


@dataclass(frozen=True)
class AdaptationRule:
    name: str
    condition: Condition
    effects: EffectSet
    priority: Priority = "medium"
    description: str = ""

    def ref(self) -> RuleRef:
        return RuleRef(name=self.name, priority=self.priority)


@dataclass(frozen=True)
class TriggeredRule:
    rule: AdaptationRule
    priority: Priority
    order: int

    @property
    def name(self) -> str:
        return self.rule.name

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self.priority]


@dataclass
class MergeResult:
    effects: EffectSet
    # wire path -> name of the rule that wrote the surviving value
    key_sources: Dict[str, str] = field(default_factory=dict)


DEFAULT_RULES: Tuple[AdaptationRule, ...] = (
    AdaptationRule(
        name="fine_motor",
        condition=lambda p: p.fine_motor <= 4,
        effects=EffectSet(
            objects=ObjectEffects(size=Bounded(1.5, 20, 100)),
            interface=InterfaceEffects(
                click_tolerance=Bounded(2.0, 10, 50),
                drag_sensitivity=Bounded(0.7, 0.5, 2.0),
            ),
            tasks=TaskEffects(precision_required=False),
        ),
        priority="high",
        description="larger targets and looser precision for limited fine motor control",
    ),
    AdaptationRule(
        name="gross_motor",
        condition=lambda p: p.gross_motor <= 4,
        effects=EffectSet(
            environment=EnvironmentEffects(
                navigation_speed=Bounded(0.8, 0.5, 1.5),
                movement_tolerance=Bounded(1.5, 1.0, 3.0),
            ),
            tasks=TaskEffects(large_movements=True),
            interface=InterfaceEffects(simplified_navigation=True),
        ),
        priority="high",
    ),
    AdaptationRule(
        name="visual",
        condition=lambda p: p.visual <= 5,
        effects=EffectSet(
            interface=InterfaceEffects(
                contrast="high",
                highlighting=True,
                visual_cues=True,
                color_coding=True,
                text_size="large",
            ),
            objects=ObjectEffects(glow=True),
        ),
        priority="medium",
    ),
    AdaptationRule(
        name="auditory",
        condition=lambda p: p.auditory <= 5,
        effects=EffectSet(
            assistance=AssistanceEffects(
                audio_narration=True,
                sound_cues=True,
                voice_guidance=True,
                audio_feedback=True,
                speech_rate="slow",
            ),
        ),
        priority="medium",
    ),
    AdaptationRule(
        name="cognitive",
        condition=lambda p: p.cognitive <= 5,
        effects=EffectSet(
            tasks=TaskEffects(complexity="low", repetition=True),
            assistance=AssistanceEffects(step_by_step_guidance=True, visual_instructions=True),
            interface=InterfaceEffects(simplified=True),
        ),
        priority="high",
    ),
    AdaptationRule(
        name="attention",
        condition=lambda p: p.attention <= 4,
        effects=EffectSet(
            environment=EnvironmentEffects(
                session_length="short",
                frequent_breaks=True,
                distraction_reduction=True,
            ),
            interface=InterfaceEffects(progress_indicators=True),
            assistance=AssistanceEffects(motivation_rewards=True),
        ),
        priority="high",
    ),
    AdaptationRule(
        name="memory",
        condition=lambda p: p.memory <= 5,
        effects=EffectSet(
            assistance=AssistanceEffects(
                memory_aids=True,
                simplified_instructions=True,
                contextual_help=True,
            ),
            interface=InterfaceEffects(visual_reminders=True),
            tasks=TaskEffects(repetition=True),
        ),
        priority="medium",
    ),
    AdaptationRule(
        name="processing",
        condition=lambda p: p.processing <= 5,
        effects=EffectSet(
            tasks=TaskEffects(
                time_limit_extension=True,
                slow_pace=True,
                simplified_choices=True,
                patience_mode=True,
            ),
            assistance=AssistanceEffects(clear_instructions=True),
        ),
        priority="medium",
    ),
    # Learning-profile preferences rank below every ability rule.
    AdaptationRule(
        name="learning_style_visual",
        condition=lambda p: p.learning.style == "visual",
        effects=EffectSet(
            interface=InterfaceEffects(highlighting=True, visual_cues=True),
            assistance=AssistanceEffects(visual_instructions=True),
        ),
        priority="low",
    ),
    AdaptationRule(
        name="learning_style_auditory",
        condition=lambda p: p.learning.style == "auditory",
        effects=EffectSet(
            assistance=AssistanceEffects(audio_narration=True, voice_guidance=True, sound_cues=True),
        ),
        priority="low",
    ),
    AdaptationRule(
        name="learning_style_kinesthetic",
        condition=lambda p: p.learning.style == "kinesthetic",
        effects=EffectSet(
            tasks=TaskEffects(hands_on=True),
            interface=InterfaceEffects(interactive=True),
            assistance=AssistanceEffects(tactile_feedback=True),
        ),
        priority="low",
    ),
    AdaptationRule(
        name="learning_pace_slow",
        condition=lambda p: p.learning.pace == "slow",
        effects=EffectSet(tasks=TaskEffects(slow_pace=True, time_limit_extension=True)),
        priority="low",
    ),
    AdaptationRule(
        name="learning_pace_fast",
        condition=lambda p: p.learning.pace == "fast",
        effects=EffectSet(tasks=TaskEffects(fast_pace=True, time_pressure=True)),
        priority="low",
    ),
    AdaptationRule(
        name="learning_complexity_low",
        condition=lambda p: p.learning.complexity == "low",
        effects=EffectSet(
            tasks=TaskEffects(complexity="low"),
            interface=InterfaceEffects(simplified=True),
        ),
        priority="low",
    ),
    AdaptationRule(
        name="learning_complexity_high",
        condition=lambda p: p.learning.complexity == "high",
        effects=EffectSet(tasks=TaskEffects(complexity="high", multi_step=True)),
        priority="low",
    ),
)


_OPS: Dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
}


def _threshold_condition(ability: str, op: str, value: float) -> Condition:
    compare = _OPS[op]

    def _cond(profile: AbilityProfile) -> bool:
        return compare(profile.ability(ability), value)

    return _cond


def rules_from_config(entries: Iterable[Mapping[str, Any]] | None) -> List[AdaptationRule]:
    """Build threshold rules from plain records.

    Each record looks like::

        {"name": "low_vision", "ability": "visual", "op": "<=", "value": 3,
         "priority": "high", "effects": {"interface": {"textSize": "extra-large"}}}
    """

    out: List[AdaptationRule] = []
    for idx, entry in enumerate(entries or []):
        if not isinstance(entry, Mapping):
            raise RuleConfigError(f"rule #{idx}: expected a mapping, got {type(entry).__name__}")
        name = str(entry.get("name") or f"config_rule_{idx}")
        ability = entry.get("ability")
        if ability not in ABILITY_DIMENSIONS and ability not in ABILITY_DIMENSIONS.values():
            raise RuleConfigError(f"rule {name!r}: unknown ability {ability!r}")
        op = entry.get("op", "<=")
        if op not in _OPS:
            raise RuleConfigError(f"rule {name!r}: unsupported operator {op!r}")
        try:
            value = float(entry.get("value"))
        except (TypeError, ValueError) as exc:
            raise RuleConfigError(f"rule {name!r}: threshold must be numeric") from exc
        priority = entry.get("priority", "medium")
        if priority not in PRIORITY_RANK:
            raise RuleConfigError(f"rule {name!r}: unknown priority {priority!r}")
        try:
            effects = EffectSet.from_dict(entry.get("effects"))
        except (UnknownEffectKey, ValueError, AttributeError) as exc:
            raise RuleConfigError(f"rule {name!r}: invalid effects ({exc})") from exc
        out.append(
            AdaptationRule(
                name=name,
                condition=_threshold_condition(str(ability), op, value),
                effects=effects,
                priority=priority,
                description=str(entry.get("description", "")),
            )
        )
    return out


class RuleEngine:
    """Evaluates a fixed, ordered rule set against ability profiles."""

    def __init__(self, rules: Sequence[AdaptationRule] = DEFAULT_RULES):
        self.rules: Tuple[AdaptationRule, ...] = tuple(rules)

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any] | None) -> "RuleEngine":
        extra = rules_from_config((cfg or {}).get("rules"))
        return cls(tuple(DEFAULT_RULES) + tuple(extra))

    def evaluate(self, profile: AbilityProfile) -> List[TriggeredRule]:
        """Every rule whose condition holds, in declaration order.

        A condition that raises is logged and treated as not triggered.
        """

        triggered: List[TriggeredRule] = []
        for idx, rule in enumerate(self.rules):
            try:
                hit = bool(rule.condition(profile))
            except Exception:
                log.warning("rule %s failed to evaluate; skipping", rule.name, exc_info=True)
                continue
            if hit:
                triggered.append(TriggeredRule(rule=rule, priority=rule.priority, order=idx))
        return triggered

    @staticmethod
    def merge(triggered: Iterable[TriggeredRule]) -> MergeResult:
        """Fold triggered rules into one EffectSet, lowest priority first.

        The sort is stable on (rank, declaration order), so a higher-priority
        rule always wins a shared key and equal priorities resolve to the
        later-declared rule.
        """

        result = MergeResult(effects=EffectSet())
        for tr in sorted(triggered, key=lambda t: (t.rank, t.order)):
            for ns, attr in result.effects.overlay(tr.rule.effects):
                result.key_sources[effect_path(ns, attr)] = f"rule:{tr.name}"
        return result


_SCENARIOS: Dict[str, Dict[str, Any]] = {
    "fineMotor": {
        "scenario": "grocery",
        "difficulty": "easy",
        "reason": "Fine motor practice with precise object manipulation",
        "exercises": ["item_selection", "precise_placement", "detailed_interaction"],
    },
    "grossMotor": {
        "scenario": "railway",
        "difficulty": "medium",
        "reason": "Gross motor practice with large movements and navigation",
        "exercises": ["navigation", "large_movements", "spatial_awareness"],
    },
    "visual": {
        "scenario": "hospital",
        "difficulty": "easy",
        "reason": "Visual processing practice with complex environments",
        "exercises": ["visual_search", "pattern_recognition", "detail_observation"],
    },
    "cognitive": {
        "scenario": "grocery",
        "difficulty": "hard",
        "reason": "Cognitive challenge with decision-making and problem-solving",
        "exercises": ["decision_making", "problem_solving", "logical_reasoning"],
    },
}


def recommend_scenarios(profile: AbilityProfile, weak_max: int = WEAK_ABILITY_MAX) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for ability, rec in _SCENARIOS.items():
        if profile.ability(ability) <= weak_max:
            item = {"ability": ability}
            item.update({k: (list(v) if isinstance(v, list) else v) for k, v in rec.items()})
            out.append(item)
    return out


__all__ = [
    "AdaptationRule",
    "TriggeredRule",
    "MergeResult",
    "RuleEngine",
    "DEFAULT_RULES",
    "rules_from_config",
    "recommend_scenarios",
]
