"""Closed set of failures the timer can report, and the exception carrying them."""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    ALREADY_RUNNING = "already_running"
    NOT_RUNNING = "not_running"
    NOT_FOUND = "not_found"
    STORE_FAILURE = "store_failure"
    INTERNAL = "internal"


DEFAULT_MESSAGES = {
    ErrorKind.UNAUTHORIZED: "Not authenticated",
    ErrorKind.ALREADY_RUNNING: "A work session is already running",
    ErrorKind.NOT_RUNNING: "No active work session found",
    ErrorKind.NOT_FOUND: "Work session not found",
    ErrorKind.STORE_FAILURE: "Database error",
    ErrorKind.INTERNAL: "Internal server error",
}

HTTP_STATUS = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.ALREADY_RUNNING: 400,
    ErrorKind.NOT_RUNNING: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORE_FAILURE: 400,
    ErrorKind.INTERNAL: 500,
}


class TimerError(Exception):
    def __init__(self, kind: ErrorKind, message: Optional[str] = None):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind.value}

    def __repr__(self) -> str:
        return f"TimerError({self.kind.value!r}, {self.message!r})"
