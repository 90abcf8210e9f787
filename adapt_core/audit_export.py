"""Helpers to export the adaptation decision ledger in JSON/CSV formats."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List
import csv
import io

_FIELDS: tuple[str, ...] = (
    "timestamp",
    "performance_category",
    "rules",
    "feedback_scope",
    "difficulty",
    "assistance",
    "success_rate",
    "error_rate",
    "completion_time_ms",
    "outcome_known",
    "outcome_success",
    "requests",
    "fault",
)


def _float(val: Any) -> float:
    try:
        return float(val)
    except (TypeError, ValueError):
        return 0.0


def _normalize_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten one ``AdaptationDecision.to_dict()`` record to the export fields."""

    signals = record.get("sourceSignals") or {}
    effects = record.get("resultingEffectSet") or {}
    sample = record.get("sample") or {}
    directives = signals.get("feedbackAll") or [signals.get("feedback") or {}]
    outcome = record.get("outcomeSuccess")
    return {
        "timestamp": _float(record.get("timestamp")),
        "performance_category": str(signals.get("performanceCategory") or "none"),
        "rules": ";".join(str(r.get("name", "")) for r in signals.get("rules") or []),
        "feedback_scope": ";".join(str(fb.get("scope")) for fb in directives if fb.get("scope")),
        "difficulty": str((effects.get("tasks") or {}).get("difficulty") or ""),
        "assistance": str((effects.get("assistance") or {}).get("level") or ""),
        "success_rate": _float(sample.get("successRate")),
        "error_rate": _float(sample.get("errorRate")),
        "completion_time_ms": _float(sample.get("completionTimeMs")),
        "outcome_known": bool(record.get("outcomeKnown", False)),
        "outcome_success": "" if outcome is None else bool(outcome),
        "requests": ";".join(str(r) for r in record.get("requests") or []),
        "fault": str(record.get("fault") or ""),
    }


def to_json(records: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a JSON-safe payload for audit export."""

    normalized: List[Dict[str, Any]] = [_normalize_record(rec or {}) for rec in records]
    return {"decisions": normalized}


def to_csv(records: Iterable[Dict[str, Any]]) -> str:
    """Render decisions as CSV with a fixed header."""

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for rec in records:
        writer.writerow(_normalize_record(rec or {}))
    return buf.getvalue()


__all__ = ["to_json", "to_csv"]
