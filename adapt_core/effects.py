"""Closed, namespaced effect sets.

An :class:`EffectSet` holds five disjoint namespaces. Each namespace is a
dataclass whose fields are the only keys it accepts, so a typo in a rule
definition fails at construction time instead of being dropped on the floor.
``None`` means "not set"; ``False`` is a real value.

Keys travel over the wire in camelCase (``frequentBreaks``); in Python they are
snake_case attributes (``frequent_breaks``). Both spellings are accepted by
:meth:`EffectSet.set` and :meth:`EffectSet.get`.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterator, Literal, Mapping, Optional, Tuple, get_args, get_origin, get_type_hints

from .errors import InvalidEffectValue, UnknownEffectKey

Difficulty = Literal["easy", "medium", "hard"]
AssistanceLevel = Literal["minimal", "moderate", "extensive"]
Complexity = Literal["low", "medium", "high"]

NAMESPACES: Tuple[str, ...] = ("environment", "objects", "tasks", "interface", "assistance")


@dataclass(frozen=True)
class Bounded:
    """Multiplier applied to a collaborator's base value, clamped to [min, max]."""

    multiplier: float
    min: float
    max: float

    def apply(self, base: float) -> float:
        return max(self.min, min(self.max, float(base) * self.multiplier))

    def to_dict(self) -> Dict[str, float]:
        return {"multiplier": self.multiplier, "min": self.min, "max": self.max}

    @staticmethod
    def from_value(raw: Any) -> "Bounded":
        if isinstance(raw, Bounded):
            return raw
        if isinstance(raw, Mapping):
            try:
                return Bounded(
                    multiplier=float(raw["multiplier"]),
                    min=float(raw["min"]),
                    max=float(raw["max"]),
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"invalid bounded multiplier: {raw!r}") from exc
        raise ValueError(f"invalid bounded multiplier: {raw!r}")


@dataclass
class EnvironmentEffects:
    navigation_speed: Optional[Bounded] = None
    movement_tolerance: Optional[Bounded] = None
    session_length: Optional[Literal["short", "normal", "long"]] = None
    frequent_breaks: Optional[bool] = None
    distraction_reduction: Optional[bool] = None


@dataclass
class ObjectEffects:
    size: Optional[Bounded] = None
    glow: Optional[bool] = None


@dataclass
class TaskEffects:
    difficulty: Optional[Difficulty] = None
    complexity: Optional[Complexity] = None
    precision_required: Optional[bool] = None
    large_movements: Optional[bool] = None
    repetition: Optional[bool] = None
    time_limit_extension: Optional[bool] = None
    time_limit: Optional[Literal["standard", "extended"]] = None
    slow_pace: Optional[bool] = None
    fast_pace: Optional[bool] = None
    time_pressure: Optional[bool] = None
    simplified_choices: Optional[bool] = None
    patience_mode: Optional[bool] = None
    hands_on: Optional[bool] = None
    multi_step: Optional[bool] = None


@dataclass
class InterfaceEffects:
    click_tolerance: Optional[Bounded] = None
    drag_sensitivity: Optional[Bounded] = None
    simplified_navigation: Optional[bool] = None
    contrast: Optional[Literal["low", "normal", "high"]] = None
    highlighting: Optional[bool] = None
    visual_cues: Optional[bool] = None
    color_coding: Optional[bool] = None
    text_size: Optional[Literal["small", "normal", "large", "extra-large"]] = None
    simplified: Optional[bool] = None
    progress_indicators: Optional[bool] = None
    visual_reminders: Optional[bool] = None
    error_tolerance: Optional[Literal["normal", "high"]] = None
    interactive: Optional[bool] = None


@dataclass
class AssistanceEffects:
    level: Optional[AssistanceLevel] = None
    audio_narration: Optional[bool] = None
    sound_cues: Optional[bool] = None
    voice_guidance: Optional[bool] = None
    audio_feedback: Optional[bool] = None
    speech_rate: Optional[Literal["slow", "normal", "fast"]] = None
    step_by_step_guidance: Optional[bool] = None
    visual_instructions: Optional[bool] = None
    motivation_rewards: Optional[bool] = None
    memory_aids: Optional[bool] = None
    simplified_instructions: Optional[bool] = None
    contextual_help: Optional[bool] = None
    clear_instructions: Optional[bool] = None
    error_recovery: Optional[bool] = None
    tactile_feedback: Optional[bool] = None


_NAMESPACE_TYPES = {
    "environment": EnvironmentEffects,
    "objects": ObjectEffects,
    "tasks": TaskEffects,
    "interface": InterfaceEffects,
    "assistance": AssistanceEffects,
}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _snake(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


_KEYS: Dict[str, Tuple[str, ...]] = {
    ns: tuple(f.name for f in fields(cls)) for ns, cls in _NAMESPACE_TYPES.items()
}
_BOUNDED_KEYS = {
    ("environment", "navigation_speed"),
    ("environment", "movement_tolerance"),
    ("objects", "size"),
    ("interface", "click_tolerance"),
    ("interface", "drag_sensitivity"),
}


def _value_rule(hint: Any) -> Tuple[str, Tuple[Any, ...]]:
    for arg in get_args(hint):
        if get_origin(arg) is Literal:
            return "choice", get_args(arg)
        if arg is bool:
            return "flag", ()
    return "any", ()


# (namespace, attr) -> ("choice", allowed) | ("flag", ()) | ("any", ())
_VALUE_RULES: Dict[Tuple[str, str], Tuple[str, Tuple[Any, ...]]] = {
    (ns, name): _value_rule(hint)
    for ns, cls in _NAMESPACE_TYPES.items()
    for name, hint in get_type_hints(cls).items()
}


def namespace_keys(namespace: str) -> Tuple[str, ...]:
    if namespace not in _KEYS:
        raise UnknownEffectKey(namespace, "*")
    return _KEYS[namespace]


def _resolve(namespace: str, key: str) -> str:
    allowed = namespace_keys(namespace)
    attr = key if key in allowed else _snake(key)
    if attr not in allowed:
        raise UnknownEffectKey(namespace, key)
    return attr


@dataclass
class EffectSet:
    environment: EnvironmentEffects = field(default_factory=EnvironmentEffects)
    objects: ObjectEffects = field(default_factory=ObjectEffects)
    tasks: TaskEffects = field(default_factory=TaskEffects)
    interface: InterfaceEffects = field(default_factory=InterfaceEffects)
    assistance: AssistanceEffects = field(default_factory=AssistanceEffects)

    def get(self, namespace: str, key: str) -> Any:
        attr = _resolve(namespace, key)
        return getattr(getattr(self, namespace), attr)

    def set(self, namespace: str, key: str, value: Any) -> None:
        attr = _resolve(namespace, key)
        if value is not None:
            if (namespace, attr) in _BOUNDED_KEYS:
                value = Bounded.from_value(value)
            else:
                kind, allowed = _VALUE_RULES[(namespace, attr)]
                if kind == "choice" and value not in allowed:
                    raise InvalidEffectValue(namespace, key, value)
                if kind == "flag" and not isinstance(value, bool):
                    raise InvalidEffectValue(namespace, key, value)
        setattr(getattr(self, namespace), attr, value)

    def items(self) -> Iterator[Tuple[str, str, Any]]:
        """Yield ``(namespace, key, value)`` for every key that is set."""

        for ns in NAMESPACES:
            group = getattr(self, ns)
            for attr in _KEYS[ns]:
                val = getattr(group, attr)
                if val is not None:
                    yield ns, attr, val

    def overlay(self, other: "EffectSet") -> list[Tuple[str, str]]:
        """Write every key set in ``other`` onto this set; return the keys written."""

        written = []
        for ns, attr, val in other.items():
            setattr(getattr(self, ns), attr, val)
            written.append((ns, attr))
        return written

    def copy(self) -> "EffectSet":
        return EffectSet(**{ns: replace(getattr(self, ns)) for ns in NAMESPACES})

    def is_empty(self) -> bool:
        return next(self.items(), None) is None

    def namespace_dict(self, namespace: str) -> Dict[str, Any]:
        namespace_keys(namespace)
        out: Dict[str, Any] = {}
        for ns, attr, val in self.items():
            if ns != namespace:
                continue
            out[_camel(attr)] = val.to_dict() if isinstance(val, Bounded) else val
        return out

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {ns: self.namespace_dict(ns) for ns in NAMESPACES}

    @staticmethod
    def from_dict(data: Mapping[str, Mapping[str, Any]] | None) -> "EffectSet":
        out = EffectSet()
        for ns, group in (data or {}).items():
            if ns not in _NAMESPACE_TYPES:
                raise UnknownEffectKey(str(ns), "*")
            for key, val in (group or {}).items():
                out.set(ns, key, val)
        return out


def effect_path(namespace: str, attr: str) -> str:
    """Wire name of a key, e.g. ``tasks.difficulty`` or ``environment.frequentBreaks``."""

    return f"{namespace}.{_camel(attr)}"


__all__ = [
    "NAMESPACES",
    "Bounded",
    "EnvironmentEffects",
    "ObjectEffects",
    "TaskEffects",
    "InterfaceEffects",
    "AssistanceEffects",
    "EffectSet",
    "effect_path",
    "namespace_keys",
]
