"""Utility helpers for persisting ability profiles and adaptation history.

Profiles and decision ledgers are plain JSON records keyed by user id. A real
deployment can swap this module for a database-backed implementation; the API
only relies on the load/save functions below.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
PROFILES_DIR = DATA_ROOT / "profiles"
HISTORY_DIR = DATA_ROOT / "history"

_LOCK = threading.Lock()
_SAFE_ID = re.compile(r"[^A-Za-z0-9_.-]")

log = logging.getLogger(__name__)


def _ensure_dirs() -> None:
    PROFILES_DIR.mkdir(parents=True, exist_ok=True)
    HISTORY_DIR.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        log.warning("unreadable record %s; using default", path)
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _file_id(user_id: str) -> str:
    safe = _SAFE_ID.sub("_", str(user_id)).strip("._")
    return safe or "anonymous"


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def save_profile(user_id: str, profile: Dict[str, Any]) -> None:
    _ensure_dirs()
    payload = dict(profile)
    payload["userId"] = user_id
    payload["updatedAt"] = utcnow_iso()
    with _LOCK:
        _write_json(PROFILES_DIR / f"{_file_id(user_id)}.json", payload)


def load_profile(user_id: str) -> Optional[Dict[str, Any]]:
    data = _read_json(PROFILES_DIR / f"{_file_id(user_id)}.json", None)
    return data if isinstance(data, dict) else None


def save_history(user_id: str, records: List[Dict[str, Any]]) -> None:
    _ensure_dirs()
    with _LOCK:
        _write_json(
            HISTORY_DIR / f"{_file_id(user_id)}.json",
            {"userId": user_id, "updatedAt": utcnow_iso(), "decisions": list(records)},
        )


def load_history(user_id: str) -> List[Dict[str, Any]]:
    data = _read_json(HISTORY_DIR / f"{_file_id(user_id)}.json", {})
    records = data.get("decisions") if isinstance(data, dict) else None
    return [r for r in records or [] if isinstance(r, dict)]
