# tools/replay_events.py
from __future__ import annotations
import argparse, json, sys
from pathlib import Path
from typing import Any, Dict, Iterable, List
from adapt_core.config import load_config
from adapt_core.controller import (
    ControllerContext, new_context, on_task_completed, record_interaction, snapshot, submit_feedback, tick,
)

# One JSON object per line:
#   {"type": "task", "counters": {...}}
#   {"type": "feedback", "scope": "task", "responses": {...}, "defer": false}
#   {"type": "interaction", "success": true, "timestamp": 12.5}
#   {"type": "tick", "now": 40.0}

def _read_events(lines: Iterable[str]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for n, line in enumerate(lines, 1):
        line = line.strip()
        if not line or line.startswith("#"): continue
        try:
            evt = json.loads(line)
        except ValueError:
            print(f"line {n}: not JSON, skipped", file=sys.stderr); continue
        if isinstance(evt, dict): out.append(evt)
    return out

def replay(events: Iterable[Dict[str, Any]], ctx: ControllerContext) -> List[Dict[str, Any]]:
    """Feed events through ``ctx``; return one output row per decision made."""
    rows: List[Dict[str, Any]] = []
    for evt in events:
        kind = evt.get("type")
        if kind == "task":
            d = on_task_completed(ctx, evt.get("counters") or {})
        elif kind == "feedback":
            d = submit_feedback(ctx, str(evt.get("scope", "task")), evt.get("responses") or {},
                                defer=bool(evt.get("defer", False)))
        elif kind == "interaction":
            record_interaction(ctx, bool(evt.get("success")), evt.get("timestamp")); continue
        elif kind == "tick":
            d = tick(ctx, evt.get("now"))
        else:
            print(f"unknown event type {kind!r}, skipped", file=sys.stderr); continue
        if d is not None:
            rows.append({"event": kind, **d.to_dict()})
    return rows

def main():
    ap = argparse.ArgumentParser(description="Replay a JSONL event log through a fresh controller.")
    ap.add_argument("events", help="path to the JSONL event log ('-' for stdin)")
    ap.add_argument("--user", default="replay")
    ap.add_argument("--profile", help="JSON file with an ability profile")
    ap.add_argument("--summary", action="store_true", help="print the final state snapshot")
    a = ap.parse_args()

    profile = json.loads(Path(a.profile).read_text(encoding="utf-8")) if a.profile else None
    ctx = new_context(a.user, profile, cfg=load_config())
    if a.events == "-":
        events = _read_events(sys.stdin)
    else:
        with open(a.events, "r", encoding="utf-8") as f:
            events = _read_events(f)
    for row in replay(events, ctx):
        print(json.dumps(row, sort_keys=True))
    if a.summary:
        print(json.dumps(snapshot(ctx), indent=2, sort_keys=True))

if __name__ == "__main__":
    main()
