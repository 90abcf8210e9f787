from __future__ import annotations

import logging
from typing import Any, Dict, List

from .config import DEBUG_TRACE, TRACE_FIELDS
from .controller import (
    new_context,
    on_task_completed,
    record_interaction,
    snapshot,
    submit_feedback,
    tick,
)


def _maybe_enable_trace() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    if DEBUG_TRACE:
        logging.getLogger("adapt_core.merger").setLevel(logging.INFO)


def _synthetic_profile() -> Dict[str, Any]:
    return {
        "interactionAbilities": {
            "fineMotor": 3,
            "grossMotor": 7,
            "visual": 5,
            "auditory": 8,
            "cognitive": 6,
            "attention": 3,
            "memory": 7,
            "processing": 6,
        },
        "learningProfile": {"style": "visual", "pace": "slow", "complexity": "medium"},
    }


def _synthetic_tasks() -> List[Dict[str, Any]]:
    # a rough start, a recovery, then a run that is too easy
    rates = [0.2, 0.25, 0.5, 0.6, 0.7, 0.85, 0.9, 0.95]
    tasks: List[Dict[str, Any]] = []
    for idx, rate in enumerate(rates):
        tasks.append(
            {
                "successRate": rate,
                "interactions": 20,
                "errors": int(round(20 * (1.0 - rate) / 2)),
                "stepsCompleted": 4 + idx % 3,
                "totalSteps": 6,
                "duration": 240_000 - idx * 15_000,
                "timestamp": 1_000.0 + idx * 60.0,
            }
        )
    return tasks


def run_smoke_session() -> None:
    _maybe_enable_trace()
    logging.info("Trace fields: %s", ", ".join(TRACE_FIELDS))

    ctx = new_context("smoke-user", _synthetic_profile())
    for task in _synthetic_tasks():
        decision = on_task_completed(ctx, task)
        eff = decision.resulting_effect_set
        logging.info(
            "task sr=%.2f category=%s difficulty=%s assistance=%s rules=%s",
            float(task["successRate"]),
            decision.source_signals.performance_category,
            eff.tasks.difficulty,
            eff.assistance.level,
            ",".join(r.name for r in decision.source_signals.rules),
        )

    submit_feedback(ctx, "task", {"difficulty": 5, "frustration": 4, "satisfaction": 2})

    ts = 1_500.0
    for idx in range(6):
        record_interaction(ctx, success=idx % 3 != 0, timestamp=ts + idx)
    tick(ctx, now=ts + 10)

    snap = snapshot(ctx)
    for name, entry in snap["trends"].items():
        logging.info("trend %s=%s (%d samples)", name, entry["trend"], len(entry["values"]))
    logging.info("effectiveness=%.2f decisions=%d", snap["effectiveness"], snap["decisions"])
    for rec in snap["recommendations"]:
        logging.info("recommendation %s: %s", rec["action"], rec["reason"])
    for sc in snap["scenarios"]:
        logging.info("scenario %s for %s", sc["scenario"], sc["ability"])


if __name__ == "__main__":  # pragma: no cover
    run_smoke_session()
