from __future__ import annotations
from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import logging, os, uuid, typing as t

# ---- Controller imports ----
from adapt_core.config import load_config
from adapt_core.controller import (
    ControllerContext,
    new_context,
    on_task_completed,
    record_interaction,
    snapshot,
    submit_feedback,
    tick,
    update_profile,
)
from adapt_core.errors import ControllerError
from adapt_core.history import AdaptationHistory
from adapt_core.types import AbilityProfile
from adapt_core.audit_export import to_json as audit_to_json, to_csv as audit_to_csv
from .storage import load_history, load_profile, save_history, save_profile, utcnow_iso

log = logging.getLogger(__name__)

SESS: dict[str, ControllerContext] = {}
SESSION_INFO: dict[str, dict[str, t.Any]] = {}

app = FastAPI(title="Adaptive Assistance Controller API")


@app.get("/")
def root():
    return {"status": "ok", "service": "adaptive-assist-controller"}


ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# ---- Schemas ----
class ProfileReq(BaseModel):
    interactionAbilities: dict[str, float] | None = None
    learningProfile: dict[str, str] | None = None
    physicalLimitations: dict[str, t.Any] | None = None

class StartReq(BaseModel):
    user_id: str = Field(min_length=1)
    profile: ProfileReq | None = None

class TaskReq(BaseModel):
    successRate: float | None = None
    successes: float | None = None
    attempts: float | None = None
    interactions: float | None = None
    errors: float | None = None
    stepsCompleted: float | None = None
    totalSteps: float | None = None
    duration: float | None = None
    difficulty: str | None = None
    assistanceLevel: str | None = None
    timestamp: float | None = None

class InteractionReq(BaseModel):
    success: bool
    timestamp: float | None = None

class FeedbackReq(BaseModel):
    scope: t.Literal["task", "session", "periodic"] = "task"
    responses: dict[str, t.Any] = Field(default_factory=dict)
    defer: bool = False

# ---- Helpers ----
def _ctx(sid: str) -> ControllerContext:
    ctx = SESS.get(sid)
    if ctx is None:
        raise HTTPException(404, "session not found")
    return ctx


def _decision_payload(decision) -> dict[str, t.Any] | None:
    return decision.to_dict() if decision is not None else None


def _touch(sid: str) -> None:
    info = SESSION_INFO.get(sid)
    if info is not None:
        info["last_updated"] = utcnow_iso()

# ---- Health ----
@app.get("/health")
def health():
    return {"status": "ok", "sessions_active": len(SESS)}

# ---- Sessions ----
@app.post("/sessions")
def start(req: StartReq):
    if req.profile is not None:
        profile = AbilityProfile.from_dict(req.profile.model_dump(exclude_none=True))
    else:
        profile = AbilityProfile.from_dict(load_profile(req.user_id))
    history = AdaptationHistory.from_records(load_history(req.user_id))
    try:
        ctx = new_context(req.user_id, profile, cfg=load_config(), history=history)
    except ControllerError as exc:
        raise HTTPException(400, f"invalid controller configuration: {exc}")
    sid = str(uuid.uuid4())
    SESS[sid] = ctx
    started_at = utcnow_iso()
    SESSION_INFO[sid] = {"user_id": req.user_id, "started_at": started_at, "last_updated": started_at}
    log.info("session %s started for %s (%d stored decisions)", sid, req.user_id, len(history))
    return {"session_id": sid, "profile": profile.to_dict(), "decisions": len(history)}


@app.put("/sessions/{sid}/profile")
def put_profile(sid: str, req: ProfileReq):
    ctx = _ctx(sid)
    profile = update_profile(ctx, req.model_dump(exclude_none=True))
    save_profile(ctx.user_id, profile.to_dict())
    _touch(sid)
    return {"ok": True, "profile": profile.to_dict()}


@app.post("/sessions/{sid}/tasks")
def task_completed(sid: str, req: TaskReq):
    ctx = _ctx(sid)
    decision = on_task_completed(ctx, req.model_dump(exclude_none=True))
    _touch(sid)
    return {"decision": _decision_payload(decision)}


@app.post("/sessions/{sid}/interactions")
def interaction(sid: str, req: InteractionReq):
    ctx = _ctx(sid)
    record_interaction(ctx, req.success, req.timestamp)
    return {"ok": True}


@app.post("/sessions/{sid}/tick")
def periodic_tick(sid: str, now: float | None = Query(None, description="Sampling time (epoch seconds)")):
    ctx = _ctx(sid)
    decision = tick(ctx, now)
    if decision is not None:
        _touch(sid)
    return {"decision": _decision_payload(decision)}


@app.post("/sessions/{sid}/feedback")
def feedback(sid: str, req: FeedbackReq):
    ctx = _ctx(sid)
    decision = submit_feedback(ctx, req.scope, req.responses, defer=req.defer)
    _touch(sid)
    return {"deferred": req.defer, "decision": _decision_payload(decision)}


@app.get("/sessions/{sid}/state")
def state(sid: str):
    ctx = _ctx(sid)
    out = snapshot(ctx)
    out["session"] = dict(SESSION_INFO.get(sid, {}))
    return out


@app.get("/sessions/{sid}/history.json")
def history_json(sid: str):
    ctx = _ctx(sid)
    payload = audit_to_json(ctx.history.to_records())
    return {"session_id": sid, **payload}


@app.get("/sessions/{sid}/history.csv")
def history_csv(sid: str):
    ctx = _ctx(sid)
    body = audit_to_csv(ctx.history.to_records())
    filename = f"{sid}_history.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )


@app.post("/sessions/{sid}/finish")
def finish(sid: str):
    ctx = _ctx(sid)
    save_profile(ctx.user_id, ctx.profile.to_dict())
    save_history(ctx.user_id, ctx.history.to_records())
    SESS.pop(sid, None)
    info = SESSION_INFO.pop(sid, {})
    log.info("session %s finished for %s", sid, ctx.user_id)
    return {
        "ok": True,
        "user_id": ctx.user_id,
        "started_at": info.get("started_at"),
        "decisions": len(ctx.history),
    }


@app.get("/users/{user_id}/profile")
def get_profile(user_id: str):
    profile = load_profile(user_id)
    if not profile:
        raise HTTPException(404, "profile not found")
    return profile
