from dataclasses import dataclass
from functools import lru_cache
import os

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    database_url: str
    cors_origins: tuple[str, ...]
    log_level: str
    log_dir: str | None
    session_limit: int
    tick_seconds: float


def _env(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip()


def load_settings() -> Settings:
    database_url = _env("WORKTIMER_DATABASE_URL", "sqlite:///worktimer.db")
    origins = _env("WORKTIMER_CORS_ORIGINS", "http://localhost:3000")
    log_level = _env("WORKTIMER_LOG_LEVEL", "INFO").upper()
    log_dir = _env("WORKTIMER_LOG_DIR", "") or None

    try:
        session_limit = int(_env("WORKTIMER_SESSION_LIMIT", "50"))
        tick_seconds = float(_env("WORKTIMER_TICK_SECONDS", "1.0"))
    except ValueError as e:
        raise RuntimeError(f"Invalid numeric setting in .env: {e}") from e

    if session_limit <= 0:
        raise RuntimeError("WORKTIMER_SESSION_LIMIT must be positive")
    if tick_seconds <= 0:
        raise RuntimeError("WORKTIMER_TICK_SECONDS must be positive")

    return Settings(
        database_url=database_url,
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        log_level=log_level,
        log_dir=log_dir,
        session_limit=session_limit,
        tick_seconds=tick_seconds,
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
