from __future__ import annotations

from typing import Optional

from worktimer.errors import ErrorKind, TimerError
from worktimer.logger import log
from worktimer.models import WorkSession
from worktimer.store import SessionStore


class SessionGuard:
    """Checks for a user's open session before start/stop.

    The check is advisory; the unique open-session index in the store is what
    actually rejects a second open row.
    """

    def __init__(self, store: SessionStore):
        self._store = store

    def find_open_session(self, user_id: str) -> Optional[WorkSession]:
        # "No row" comes back as None; query failures raise STORE_FAILURE
        return self._store.find_open(user_id)

    def ensure_none_open(self, user_id: str) -> None:
        active = self.find_open_session(user_id)
        if active is not None:
            log.debug(f"User {user_id} already has open session {active.id}")
            raise TimerError(ErrorKind.ALREADY_RUNNING)

    def require_open(self, user_id: str) -> WorkSession:
        active = self.find_open_session(user_id)
        if active is None:
            log.debug(f"User {user_id} has no open session")
            raise TimerError(ErrorKind.NOT_RUNNING)
        return active
