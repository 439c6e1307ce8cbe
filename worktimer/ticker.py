import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from worktimer.durations import elapsed_ms
from worktimer.logger import log


@dataclass(frozen=True)
class TimerState:
    running: bool
    session_id: Optional[int]
    start_time: Optional[datetime]
    elapsed: int  # milliseconds

    def to_dict(self) -> dict:
        return {
            "running": self.running,
            "sessionId": self.session_id,
            "startTime": self.start_time.isoformat() if self.start_time else None,
            "elapsed": self.elapsed,
        }


IDLE_STATE = TimerState(running=False, session_id=None, start_time=None, elapsed=0)


class TickHandle:
    """Reports a running session's elapsed time to a callback once per interval until cancelled.

    Runs on a daemon thread. Elapsed time is wall clock minus start, never read back from the store.
    """

    def __init__(self, session_id: int, start_time: datetime, on_tick: Callable[[TimerState], None],
                 interval: float = 1.0, clock: Optional[Callable[[], datetime]] = None):
        if interval <= 0:
            raise ValueError("Tick interval must be positive")
        self.session_id = session_id
        self.start_time = start_time
        self.interval = interval
        self._on_tick = on_tick
        self._clock = clock
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"worktimer-tick-{session_id}", daemon=True)
        self._thread.start()
        log.debug(f"Started tick for session {session_id} every {interval}s")

    @property
    def active(self):
        return not self._cancelled.is_set() and self._thread.is_alive()

    def state(self) -> TimerState:
        now = self._clock() if self._clock else datetime.now().astimezone()
        return TimerState(
            running=True,
            session_id=self.session_id,
            start_time=self.start_time,
            elapsed=elapsed_ms(self.start_time, now),
        )

    def _run(self):
        while not self._cancelled.wait(self.interval):
            try:
                self._on_tick(self.state())
            except Exception:
                log.exception(f"Tick callback for session {self.session_id} raised")

    def cancel(self, wait=False):
        if not self._cancelled.is_set():
            self._cancelled.set()
            log.debug(f"Cancelled tick for session {self.session_id}")
        if wait and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval * 2)
