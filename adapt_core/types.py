from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Literal, Tuple
import math
import time

from .effects import EffectSet

Trend = Literal["improving", "declining", "stable"]
Priority = Literal["low", "medium", "high"]
PerformanceCategory = Literal["reduce", "increase", "none"]
FeedbackScope = Literal["task", "session", "periodic"]
SampleKind = Literal["task", "periodic"]
Difficulty = Literal["easy", "medium", "hard"]
AssistanceLevel = Literal["minimal", "moderate", "extensive"]

PRIORITY_RANK: Dict[str, int] = {"low": 0, "medium": 1, "high": 2}

# wire name -> attribute name
ABILITY_DIMENSIONS: Dict[str, str] = {
    "fineMotor": "fine_motor",
    "grossMotor": "gross_motor",
    "visual": "visual",
    "auditory": "auditory",
    "cognitive": "cognitive",
    "attention": "attention",
    "memory": "memory",
    "processing": "processing",
}
ABILITY_MIN = 1
ABILITY_MAX = 10
ABILITY_DEFAULT = 5

_STYLES = ("visual", "auditory", "kinesthetic", "mixed")
_PACES = ("slow", "normal", "fast")
_COMPLEXITIES = ("low", "medium", "high")


def _finite(raw: Any) -> Optional[float]:
    try:
        val = float(raw)
    except (TypeError, ValueError):
        return None
    return val if math.isfinite(val) else None


def _ability(raw: Any) -> int:
    val = _finite(raw)
    if val is None:
        return ABILITY_DEFAULT
    return int(max(ABILITY_MIN, min(ABILITY_MAX, round(val))))


def _choice(raw: Any, allowed: Tuple[str, ...], default: str) -> str:
    return raw if isinstance(raw, str) and raw in allowed else default


@dataclass(frozen=True)
class LearningProfile:
    style: Literal["visual", "auditory", "kinesthetic", "mixed"] = "visual"
    pace: Literal["slow", "normal", "fast"] = "normal"
    complexity: Literal["low", "medium", "high"] = "medium"

    @staticmethod
    def from_dict(data: Mapping[str, Any] | None) -> "LearningProfile":
        data = data or {}
        return LearningProfile(
            style=_choice(data.get("style"), _STYLES, "visual"),
            pace=_choice(data.get("pace"), _PACES, "normal"),
            complexity=_choice(data.get("complexity"), _COMPLEXITIES, "medium"),
        )


@dataclass(frozen=True)
class AbilityProfile:
    """Snapshot of a user's ability scores (1..10 per dimension)."""

    fine_motor: int = ABILITY_DEFAULT
    gross_motor: int = ABILITY_DEFAULT
    visual: int = ABILITY_DEFAULT
    auditory: int = ABILITY_DEFAULT
    cognitive: int = ABILITY_DEFAULT
    attention: int = ABILITY_DEFAULT
    memory: int = ABILITY_DEFAULT
    processing: int = ABILITY_DEFAULT
    learning: LearningProfile = field(default_factory=LearningProfile)
    physical_limitations: Dict[str, Any] = field(default_factory=dict)

    def ability(self, name: str) -> int:
        attr = ABILITY_DIMENSIONS.get(name, name)
        if attr not in ABILITY_DIMENSIONS.values():
            raise KeyError(name)
        return int(getattr(self, attr))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interactionAbilities": {
                wire: getattr(self, attr) for wire, attr in ABILITY_DIMENSIONS.items()
            },
            "learningProfile": {
                "style": self.learning.style,
                "pace": self.learning.pace,
                "complexity": self.learning.complexity,
            },
            "physicalLimitations": dict(self.physical_limitations),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any] | None) -> "AbilityProfile":
        """Accept either the nested wire shape or a flat mapping of scores.

        Missing or non-numeric scores fall back to mid-scale (5); values are
        clamped to 1..10.
        """

        data = data or {}
        scores = data.get("interactionAbilities")
        if not isinstance(scores, Mapping):
            scores = data
        kwargs: Dict[str, Any] = {}
        for wire, attr in ABILITY_DIMENSIONS.items():
            raw = scores.get(wire, scores.get(attr))
            kwargs[attr] = _ability(raw)
        learning = data.get("learningProfile", data.get("learning"))
        limits = data.get("physicalLimitations", data.get("physical_limitations"))
        return AbilityProfile(
            learning=LearningProfile.from_dict(learning if isinstance(learning, Mapping) else None),
            physical_limitations=dict(limits) if isinstance(limits, Mapping) else {},
            **kwargs,
        )


@dataclass(frozen=True)
class PerformanceSample:
    success_rate: float = 0.0
    completion_time_ms: float = 0.0
    error_rate: float = 0.0
    efficiency: float = 0.0
    difficulty: Difficulty = "medium"
    assistance_level: AssistanceLevel = "moderate"
    timestamp: float = field(default_factory=time.time)

    def metrics(self) -> Dict[str, float]:
        return {
            "successRate": self.success_rate,
            "completionTimeMs": self.completion_time_ms,
            "errorRate": self.error_rate,
            "efficiency": self.efficiency,
        }

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.metrics())
        out.update(
            {
                "difficulty": self.difficulty,
                "assistanceLevel": self.assistance_level,
                "timestamp": self.timestamp,
            }
        )
        return out

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "PerformanceSample":
        def _rate(key: str) -> float:
            val = _finite(data.get(key))
            return 0.0 if val is None else max(0.0, min(1.0, val))

        elapsed = _finite(data.get("completionTimeMs"))
        ts = _finite(data.get("timestamp"))
        return PerformanceSample(
            success_rate=_rate("successRate"),
            completion_time_ms=max(0.0, elapsed or 0.0),
            error_rate=_rate("errorRate"),
            efficiency=_rate("efficiency"),
            difficulty=_choice(data.get("difficulty"), ("easy", "medium", "hard"), "medium"),
            assistance_level=_choice(
                data.get("assistanceLevel"), ("minimal", "moderate", "extensive"), "moderate"
            ),
            timestamp=ts if ts is not None else time.time(),
        )


@dataclass(frozen=True)
class FeedbackDirective:
    scope: FeedbackScope
    difficulty_rating: Optional[int] = None
    frustration: Optional[int] = None
    assistance_rating: Optional[int] = None
    need_help: bool = False
    requests: Tuple[str, ...] = ()
    note: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def is_empty(self) -> bool:
        return (
            self.difficulty_rating is None
            and self.frustration is None
            and self.assistance_rating is None
            and not self.need_help
            and not self.requests
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "difficultyRating": self.difficulty_rating,
            "frustration": self.frustration,
            "assistanceRating": self.assistance_rating,
            "needHelp": self.need_help,
            "requests": list(self.requests),
            "note": self.note,
            "timestamp": self.timestamp,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "FeedbackDirective":
        def _rating(key: str) -> Optional[int]:
            val = _finite(data.get(key))
            if val is None or val != int(val) or not 1 <= val <= 5:
                return None
            return int(val)

        ts = _finite(data.get("timestamp"))
        return FeedbackDirective(
            scope=_choice(data.get("scope"), ("task", "session", "periodic"), "task"),
            difficulty_rating=_rating("difficultyRating"),
            frustration=_rating("frustration"),
            assistance_rating=_rating("assistanceRating"),
            need_help=bool(data.get("needHelp", False)),
            requests=tuple(str(r) for r in data.get("requests") or ()),
            note=data.get("note") if isinstance(data.get("note"), str) else None,
            timestamp=ts if ts is not None else time.time(),
        )


@dataclass(frozen=True)
class RuleRef:
    """Provenance entry for a rule that contributed to a decision."""

    name: str
    priority: Priority

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "priority": self.priority}


@dataclass(frozen=True)
class SourceSignals:
    rules: Tuple[RuleRef, ...] = ()
    performance_category: PerformanceCategory = "none"
    feedback: Optional[FeedbackDirective] = None
    trends: Dict[str, Trend] = field(default_factory=dict)
    # every directive consumed by the decision, oldest first; ``feedback`` is the last one
    feedback_all: Tuple[FeedbackDirective, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rules": [r.to_dict() for r in self.rules],
            "performanceCategory": self.performance_category,
            "feedback": self.feedback.to_dict() if self.feedback else None,
            "trends": dict(self.trends),
            "feedbackAll": [fb.to_dict() for fb in self.feedback_all],
        }


@dataclass
class AdaptationDecision:
    source_signals: SourceSignals
    resulting_effect_set: EffectSet
    timestamp: float = field(default_factory=time.time)
    outcome_known: bool = False
    outcome_success: Optional[bool] = None
    sample: Optional[PerformanceSample] = None
    key_sources: Dict[str, str] = field(default_factory=dict)
    requests: Tuple[str, ...] = ()
    fault: Optional[str] = None
    # "task" or "periodic"; periodic samples only carry success and error rates
    sample_kind: SampleKind = "task"

    def label_outcome(self, success: bool) -> bool:
        """Set the outcome fields once; return False if already labeled."""

        if self.outcome_known:
            return False
        self.outcome_known = True
        self.outcome_success = bool(success)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceSignals": self.source_signals.to_dict(),
            "resultingEffectSet": self.resulting_effect_set.to_dict(),
            "timestamp": self.timestamp,
            "outcomeKnown": self.outcome_known,
            "outcomeSuccess": self.outcome_success,
            "sample": self.sample.to_dict() if self.sample else None,
            "keySources": dict(self.key_sources),
            "requests": list(self.requests),
            "fault": self.fault,
            "sampleKind": self.sample_kind,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "AdaptationDecision":
        sig = data.get("sourceSignals") or {}
        fb = sig.get("feedback")
        feedback = FeedbackDirective.from_dict(fb) if isinstance(fb, Mapping) else None
        feedback_all = tuple(
            FeedbackDirective.from_dict(item) for item in sig.get("feedbackAll") or () if isinstance(item, Mapping)
        )
        if not feedback_all and feedback is not None:
            feedback_all = (feedback,)
        rules: List[RuleRef] = []
        for r in sig.get("rules") or []:
            prio = r.get("priority")
            rules.append(RuleRef(name=str(r.get("name", "")), priority=prio if prio in PRIORITY_RANK else "low"))
        category = sig.get("performanceCategory")
        signals = SourceSignals(
            rules=tuple(rules),
            performance_category=category if category in ("reduce", "increase", "none") else "none",
            feedback=feedback,
            trends=dict(sig.get("trends") or {}),
            feedback_all=feedback_all,
        )
        sample = data.get("sample")
        outcome = data.get("outcomeSuccess")
        return AdaptationDecision(
            source_signals=signals,
            resulting_effect_set=EffectSet.from_dict(data.get("resultingEffectSet")),
            timestamp=float(data.get("timestamp") or 0.0),
            outcome_known=bool(data.get("outcomeKnown", False)),
            outcome_success=None if outcome is None else bool(outcome),
            sample=PerformanceSample.from_dict(sample) if isinstance(sample, Mapping) else None,
            key_sources=dict(data.get("keySources") or {}),
            requests=tuple(data.get("requests") or ()),
            fault=data.get("fault"),
            sample_kind="periodic" if data.get("sampleKind") == "periodic" else "task",
        )
