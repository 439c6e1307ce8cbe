from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from worktimer.config import get_settings
from worktimer import models  # noqa: F401  registers the tables on SQLModel.metadata


def make_engine(database_url: str):
    kwargs = {"echo": False}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # An in-memory database only lives as long as its single connection
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)


engine = make_engine(get_settings().database_url)


def get_session():
    with Session(engine) as session:
        yield session
