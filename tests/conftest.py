from __future__ import annotations

import logging
from typing import Generator

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from ormscope.config import BenchConfig
from ormscope.database import create_engine, reset_schema

# In-memory SQLite keeps the suite self-contained; the pool hands every
# connection request on this thread the same database.
DB_URL = "sqlite://"


class FakeClock:
    """Nanosecond clock that only moves when told to."""

    def __init__(self, start_ns: int = 0) -> None:
        self.now_ns = start_ns

    def __call__(self) -> int:
        return self.now_ns

    def advance(self, milliseconds: int) -> None:
        self.now_ns += milliseconds * 1_000_000


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start_ns=1_000_000_000)


@pytest.fixture
def config() -> BenchConfig:
    return BenchConfig(database_url=DB_URL)


@pytest.fixture
def engine(config: BenchConfig) -> Generator[Engine, None, None]:
    """A fresh in-memory database with the benchmark schema."""
    sync_engine = create_engine(config)
    reset_schema(sync_engine)
    try:
        yield sync_engine
    finally:
        sync_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    db_session = session_factory()
    try:
        yield db_session
    finally:
        db_session.rollback()
        db_session.close()


@pytest.fixture
def restore_logging():
    """Put the root logger and SQL echo back the way the test found them."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    sql_level = logging.getLogger("sqlalchemy.engine").level
    try:
        yield
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in handlers:
            root.addHandler(handler)
        root.setLevel(level)
        logging.getLogger("sqlalchemy.engine").setLevel(sql_level)
