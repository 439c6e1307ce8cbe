"""
Work sessions: start/stop the timer, current status with recent history,
totals over a time window, and owner-scoped corrections.
The caller is identified by the X-User-Id header.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, model_validator
from sqlmodel import Session

from worktimer.config import get_settings
from worktimer.db import get_session
from worktimer.durations import to_utc
from worktimer.errors import ErrorKind, TimerError
from worktimer.ticker import IDLE_STATE
from worktimer.timer import TimerFacade, session_dict

router = APIRouter(prefix="/api", tags=["sessions"])


class UpdateSessionRequest(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @model_validator(mode="after")
    def _end_after_start(self):
        # Either side may arrive without an offset; naive means UTC
        if self.start_time and self.end_time and to_utc(self.end_time) < to_utc(self.start_time):
            raise ValueError("end_time is before start_time")
        return self


def require_user_id(user_id: str | None = Header(default=None, alias="X-User-Id")) -> str:
    if not user_id or not user_id.strip():
        raise TimerError(ErrorKind.UNAUTHORIZED)
    return user_id.strip()


def get_timer(db: Session = Depends(get_session)):
    timer = TimerFacade(db, tick_interval=get_settings().tick_seconds)
    try:
        yield timer
    finally:
        timer.destroy()


@router.post("/start")
def start_timer(
    uid: str = Depends(require_user_id),
    timer: TimerFacade = Depends(get_timer),
):
    """Start a work session. Fails with 400 if one is already running."""
    started = timer.start(uid)
    return {"success": True, "sessionId": started.session_id}


@router.post("/stop")
def stop_timer(
    uid: str = Depends(require_user_id),
    timer: TimerFacade = Depends(get_timer),
):
    """Stop the running work session. Fails with 400 if none is active."""
    stopped = timer.stop(uid)
    return {"success": True, "session": session_dict(stopped.session)}


@router.get("/status")
def timer_status(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    uid: str = Depends(require_user_id),
    timer: TimerFacade = Depends(get_timer),
):
    """Current timer state plus the most recent sessions (newest first).

    Always 200 once authenticated: a failed lookup reports idle/empty and puts the message in "error".
    """
    body = {"currentState": IDLE_STATE.to_dict(), "sessions": []}
    try:
        body["currentState"] = timer.status(uid).to_dict()
    except TimerError as e:
        body["error"] = e.message
    try:
        rows = timer.list_sessions(uid, limit or get_settings().session_limit)
        body["sessions"] = [session_dict(r) for r in rows]
    except TimerError as e:
        body.setdefault("error", e.message)
    return body


@router.get("/sessions")
def list_sessions(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    uid: str = Depends(require_user_id),
    timer: TimerFacade = Depends(get_timer),
):
    """List recent sessions (newest first) for this user."""
    rows = timer.list_sessions(uid, limit or get_settings().session_limit)
    return [session_dict(r) for r in rows]


@router.get("/sessions/total")
def total_minutes(
    start: datetime,
    end: datetime,
    uid: str = Depends(require_user_id),
    timer: TimerFacade = Depends(get_timer),
):
    """Minutes worked across closed sessions that started within [start, end]."""
    return {"totalMinutes": timer.total_minutes(uid, start, end)}


@router.patch("/sessions/{session_id}")
def update_session(
    session_id: int,
    req: UpdateSessionRequest,
    uid: str = Depends(require_user_id),
    timer: TimerFacade = Depends(get_timer),
):
    """Correct the start and/or end time of one of this user's sessions.

    Only fields present in the body are changed; an explicit null end_time reopens the session.
    """
    fields = {name: getattr(req, name) for name in req.model_fields_set}
    try:
        row = timer.update_session(uid, session_id, **fields)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return session_dict(row)


@router.delete("/sessions/{session_id}")
def delete_session(
    session_id: int,
    uid: str = Depends(require_user_id),
    timer: TimerFacade = Depends(get_timer),
):
    timer.delete_session(uid, session_id)
    return {"success": True}
