"""
Work Timer – Backend API
Start with: uvicorn worktimer.main:app --reload
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from worktimer.config import get_settings
from worktimer.db import engine, init_db
from worktimer.errors import TimerError
from worktimer.logger import get_logger, log
from worktimer.routers import profile, sessions

settings = get_settings()
get_logger(level=settings.log_level, log_dir=settings.log_dir)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(engine)
    log.info("=== Work Timer API started ===")
    yield


app = FastAPI(
    title="Work Timer API",
    description="Work-session time tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# Allow the frontend to call this API
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TimerError)
async def timer_error_handler(request: Request, exc: TimerError):
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc!r}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
def health():
    """Check that the API is running. Frontend can call this first."""
    return {"status": "ok", "message": "Work Timer API is running"}


@app.get("/")
def root():
    return {"app": "Work Timer", "docs": "/docs"}


app.include_router(sessions.router)
app.include_router(profile.router)
