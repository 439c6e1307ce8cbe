"""
Owner-scoped persistence for work sessions and profiles.

Every query filters by user_id. Database errors come out as TimerError
(STORE_FAILURE with the driver's message); a missing row on close/update/delete
is NOT_FOUND rather than a silent no-op.
"""
from __future__ import annotations

import contextlib
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from worktimer.durations import to_utc
from worktimer.errors import ErrorKind, TimerError
from worktimer.logger import log
from worktimer.models import Profile, WorkSession

SESSION_FIELDS = ("start_time", "end_time")
PROFILE_FIELDS = ("full_name", "avatar_url", "company_name", "website", "unsubscribed")


def _driver_message(e: SQLAlchemyError) -> str:
    return str(getattr(e, "orig", None) or e)


class SessionStore:
    def __init__(self, db: Session):
        self._db = db

    @contextlib.contextmanager
    def _store_errors(self, on_conflict: Optional[ErrorKind] = None):
        try:
            yield
        except IntegrityError as e:
            self._db.rollback()
            if on_conflict is not None:
                log.debug(f"Integrity conflict mapped to {on_conflict.value}: {_driver_message(e)}")
                raise TimerError(on_conflict) from e
            log.warning(f"Store integrity error: {_driver_message(e)}")
            raise TimerError(ErrorKind.STORE_FAILURE, _driver_message(e)) from e
        except SQLAlchemyError as e:
            self._db.rollback()
            log.warning(f"Store failure: {_driver_message(e)}")
            raise TimerError(ErrorKind.STORE_FAILURE, _driver_message(e)) from e

    def _owned(self, session_id: int, user_id: str, open_only: bool = False) -> WorkSession:
        statement = select(WorkSession).where(
            WorkSession.id == session_id, WorkSession.user_id == user_id
        )
        if open_only:
            statement = statement.where(WorkSession.end_time.is_(None))
        row = self._db.exec(statement).one_or_none()
        if row is None:
            raise TimerError(ErrorKind.NOT_FOUND)
        return row

    def find_open(self, user_id: str) -> Optional[WorkSession]:
        statement = (
            select(WorkSession)
            .where(WorkSession.user_id == user_id, WorkSession.end_time.is_(None))
            .order_by(WorkSession.id.desc())
        )
        with self._store_errors():
            return self._db.exec(statement).first()

    def insert(self, user_id: str, start_time: datetime) -> WorkSession:
        row = WorkSession(user_id=user_id, start_time=start_time)
        with self._store_errors(on_conflict=ErrorKind.ALREADY_RUNNING):
            self._db.add(row)
            self._db.commit()
            self._db.refresh(row)
        return row

    def close(self, session_id: int, user_id: str, end_time: datetime) -> WorkSession:
        with self._store_errors():
            row = self._owned(session_id, user_id, open_only=True)
            row.end_time = end_time
            self._db.add(row)
            self._db.commit()
            self._db.refresh(row)
        return row

    def list(self, user_id: str, limit: int) -> list[WorkSession]:
        statement = (
            select(WorkSession)
            .where(WorkSession.user_id == user_id)
            .order_by(WorkSession.created_at.desc(), WorkSession.id.desc())
            .limit(limit)
        )
        with self._store_errors():
            return list(self._db.exec(statement).all())

    def closed_between(self, user_id: str, start: datetime, end: datetime) -> list[WorkSession]:
        """Closed sessions whose start_time lies in [start, end]."""
        statement = select(WorkSession).where(
            WorkSession.user_id == user_id,
            WorkSession.start_time >= start,
            WorkSession.start_time <= end,
            WorkSession.end_time.is_not(None),
        )
        with self._store_errors():
            return list(self._db.exec(statement).all())

    def update(self, session_id: int, user_id: str, fields: dict) -> WorkSession:
        unknown = set(fields) - set(SESSION_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update work session fields: {', '.join(sorted(unknown))}")
        # Clearing end_time reopens the session, which may collide with another open one
        with self._store_errors(on_conflict=ErrorKind.ALREADY_RUNNING):
            row = self._owned(session_id, user_id)
            start = fields.get("start_time", row.start_time)
            end = fields.get("end_time", row.end_time)
            if start is not None and end is not None and to_utc(end) < to_utc(start):
                raise ValueError("end_time is before start_time")
            for key, value in fields.items():
                setattr(row, key, value)
            self._db.add(row)
            self._db.commit()
            self._db.refresh(row)
        return row

    def delete(self, session_id: int, user_id: str) -> None:
        with self._store_errors():
            row = self._owned(session_id, user_id)
            self._db.delete(row)
            self._db.commit()


class ProfileStore:
    def __init__(self, db: Session):
        self._db = db

    def get(self, user_id: str) -> Profile:
        try:
            profile = self._db.get(Profile, user_id)
        except SQLAlchemyError as e:
            raise TimerError(ErrorKind.STORE_FAILURE, _driver_message(e)) from e
        if profile is None:
            raise TimerError(ErrorKind.NOT_FOUND, "Profile not found")
        return profile

    def upsert(self, user_id: str, fields: dict) -> Profile:
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update profile fields: {', '.join(sorted(unknown))}")
        try:
            profile = self._db.get(Profile, user_id) or Profile(id=user_id)
            for key, value in fields.items():
                setattr(profile, key, value)
            profile.updated_at = datetime.now(timezone.utc)
            self._db.add(profile)
            self._db.commit()
            self._db.refresh(profile)
        except SQLAlchemyError as e:
            self._db.rollback()
            log.warning(f"Profile upsert failed for {user_id}: {_driver_message(e)}")
            raise TimerError(ErrorKind.STORE_FAILURE, _driver_message(e)) from e
        return profile
