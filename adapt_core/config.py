from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def cfg_int(cfg: dict, name: str, default: int) -> int:
    raw = (cfg or {}).get(name)
    if raw is None or isinstance(raw, bool):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        return default


def cfg_float(cfg: dict, name: str, default: float) -> float:
    raw = (cfg or {}).get(name)
    if raw is None or isinstance(raw, bool):
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


SUCCESS_THRESHOLD: float = 0.8
FAILURE_THRESHOLD: float = 0.3

TREND_THRESHOLD: float = 0.10
TREND_WINDOW: int = 20

HISTORY_CAP: int = 100
EFFECTIVENESS_WINDOW: int = 20
EFFECTIVENESS_REVIEW_BELOW: float = 0.5

SAMPLING_INTERVAL_SEC: int = 30
BEHAVIOR_LOOKBACK_SEC: int = 300
INTERACTION_LOG_CAP: int = 1000

SLOW_COMPLETION_MS: int = 300_000
HIGH_ERROR_RATE: float = 0.3

# Ratings are 1..5; these are the "too hard"/"too easy" cut points.
RATING_HIGH: int = 4
RATING_LOW: int = 2
RATING_MID: int = 3

WEAK_ABILITY_MAX: int = 4

DEBUG_TRACE: bool = False
TRACE_FIELDS: tuple[str, ...] = (
    "user_id",
    "performance_category",
    "rules",
    "feedback",
    "difficulty",
    "assistance",
    "effectiveness",
)
# // env overrides for staging/ops; defaults remain conservative.
SUCCESS_THRESHOLD = _env_float("SUCCESS_THRESHOLD", SUCCESS_THRESHOLD)
FAILURE_THRESHOLD = _env_float("FAILURE_THRESHOLD", FAILURE_THRESHOLD)
TREND_THRESHOLD = _env_float("TREND_THRESHOLD", TREND_THRESHOLD)
HISTORY_CAP = _env_int("HISTORY_CAP", HISTORY_CAP)
SAMPLING_INTERVAL_SEC = _env_int("SAMPLING_INTERVAL_SEC", SAMPLING_INTERVAL_SEC)
DEBUG_TRACE = _env_bool("DEBUG_TRACE", False)


def load_config(path: str = "config.json") -> dict:
    cfg = {}
    p = pathlib.Path(path)
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    if not isinstance(cfg, dict):
        cfg = {}
    e = os.environ
    if e.get("RULES_FILE"):
        rp = pathlib.Path(e["RULES_FILE"])
        try: cfg["rules"] = json.loads(rp.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg.setdefault("rules", [])
    if e.get("SAMPLING_INTERVAL_SEC"): cfg["SAMPLING_INTERVAL_SEC"] = SAMPLING_INTERVAL_SEC
    return cfg
