"""Exception types raised by the adaptation core."""
from __future__ import annotations


class ControllerError(Exception):
    """Base class for adaptation core errors."""


class UnknownEffectKey(ControllerError, KeyError):
    """An effect key outside the closed set of its namespace."""

    def __init__(self, namespace: str, key: str):
        self.namespace = namespace
        self.key = key
        super().__init__(f"{namespace}.{key}")


class InvalidEffectValue(ControllerError, ValueError):
    """A value outside the allowed choices of an effect key."""

    def __init__(self, namespace: str, key: str, value: object):
        self.namespace = namespace
        self.key = key
        self.value = value
        super().__init__(f"{namespace}.{key}: invalid value {value!r}")


class RuleConfigError(ControllerError, ValueError):
    """A declarative rule record could not be turned into a rule."""


__all__ = ["ControllerError", "UnknownEffectKey", "InvalidEffectValue", "RuleConfigError"]
