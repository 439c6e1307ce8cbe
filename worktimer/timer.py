"""
Timer operations for one database session: start/stop/status plus history,
totals and owner-scoped corrections.

Failures come out as TimerError. Bad input (malformed timestamps) raises
ValueError. Anything else is logged and turned into an INTERNAL TimerError.
"""
from __future__ import annotations

import functools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlmodel import Session

from worktimer.durations import Timestamp, elapsed_ms, session_minutes, to_utc, total_minutes
from worktimer.errors import ErrorKind, TimerError
from worktimer.guard import SessionGuard
from worktimer.logger import log
from worktimer.models import WorkSession
from worktimer.store import SessionStore
from worktimer.ticker import IDLE_STATE, TickHandle, TimerState

_UNSET = object()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _boundary(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except (TimerError, ValueError):
            raise
        except Exception as e:
            log.exception(f"Unexpected error in TimerFacade.{method.__name__}")
            raise TimerError(ErrorKind.INTERNAL) from e
    return wrapper


def session_dict(row: WorkSession) -> dict:
    minutes = None
    if row.start_time is not None and row.end_time is not None:
        minutes = session_minutes(row.start_time, row.end_time)
    return {
        "id": row.id,
        "user_id": row.user_id,
        "start_time": row.start_time.isoformat() if row.start_time else None,
        "end_time": row.end_time.isoformat() if row.end_time else None,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "minutes": minutes,
    }


@dataclass(frozen=True)
class StartedSession:
    session_id: int
    start_time: datetime
    ticker: Optional[TickHandle] = None


@dataclass(frozen=True)
class StoppedSession:
    session: WorkSession
    minutes: Optional[int]


class TimerFacade:
    def __init__(
        self,
        db: Session,
        clock: Optional[Callable[[], datetime]] = None,
        tick_interval: float = 1.0,
    ):
        self._store = SessionStore(db)
        self._guard = SessionGuard(self._store)
        self._clock = clock or _utc_now
        self._tick_interval = tick_interval
        self._ticker: Optional[TickHandle] = None

    def _now(self) -> datetime:
        return to_utc(self._clock())

    # --- Ticking ---

    def _begin_tick(self, session_id: int, start_time: datetime, on_tick) -> TickHandle:
        self._end_tick()
        self._ticker = TickHandle(
            session_id, start_time, on_tick, interval=self._tick_interval, clock=self._clock
        )
        return self._ticker

    def _end_tick(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def destroy(self) -> None:
        self._end_tick()

    # --- Timer ---

    @_boundary
    def start(self, user_id: str, on_tick: Optional[Callable[[TimerState], None]] = None) -> StartedSession:
        """Open a new session for user_id.

        Raises ALREADY_RUNNING if one is open. With on_tick, also returns a
        TickHandle reporting elapsed time every tick interval.
        """
        self._guard.ensure_none_open(user_id)
        row = self._store.insert(user_id, self._now())
        log.info(f"Started work session {row.id} for user {user_id}")
        ticker = None
        if on_tick is not None:
            ticker = self._begin_tick(row.id, row.start_time, on_tick)
        return StartedSession(session_id=row.id, start_time=row.start_time, ticker=ticker)

    @_boundary
    def stop(self, user_id: str) -> StoppedSession:
        active = self._guard.require_open(user_id)
        try:
            row = self._store.close(active.id, user_id, self._now())
        except TimerError as e:
            # Closed by someone else after the guard saw it open
            if e.kind is ErrorKind.NOT_FOUND:
                raise TimerError(ErrorKind.NOT_RUNNING) from e
            raise
        self._end_tick()
        minutes = None
        if row.start_time is not None:
            minutes = session_minutes(row.start_time, row.end_time)
        log.info(f"Stopped work session {row.id} for user {user_id} after {minutes} min")
        return StoppedSession(session=row, minutes=minutes)

    @_boundary
    def status(self, user_id: str) -> TimerState:
        active = self._guard.find_open_session(user_id)
        if active is None:
            return IDLE_STATE
        elapsed = 0
        if active.start_time is not None:
            elapsed = elapsed_ms(active.start_time, self._now())
        return TimerState(
            running=True, session_id=active.id, start_time=active.start_time, elapsed=elapsed
        )

    # --- History ---

    @_boundary
    def list_sessions(self, user_id: str, limit: int = 50) -> list[WorkSession]:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        return self._store.list(user_id, limit)

    @_boundary
    def total_minutes(self, user_id: str, start: Timestamp, end: Timestamp) -> int:
        """Minutes across closed sessions that started within [start, end]."""
        rows = self._store.closed_between(user_id, to_utc(start), to_utc(end))
        return total_minutes((r.start_time, r.end_time) for r in rows)

    # --- Corrections ---

    @_boundary
    def update_session(self, user_id: str, session_id: int, start_time=_UNSET, end_time=_UNSET) -> WorkSession:
        fields = {}
        if start_time is not _UNSET:
            fields["start_time"] = None if start_time is None else to_utc(start_time)
        if end_time is not _UNSET:
            fields["end_time"] = None if end_time is None else to_utc(end_time)
        # The store checks the merged interval, so partial updates can't invert it either
        row = self._store.update(session_id, user_id, fields)
        log.info(f"Updated work session {session_id} for user {user_id}: {', '.join(sorted(fields)) or 'no fields'}")
        return row

    @_boundary
    def delete_session(self, user_id: str, session_id: int) -> None:
        self._store.delete(session_id, user_id)
        log.info(f"Deleted work session {session_id} for user {user_id}")
