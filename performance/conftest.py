"""
Performance test configuration and fixtures.

Benchmarks run against a file-backed SQLite database so that the numbers
include real connection and cursor work without needing a server.
"""

from __future__ import annotations

import logging
from typing import Generator

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from ormscope.config import BenchConfig
from ormscope.database import create_engine, reset_schema
from ormscope.seed import seed_associations, seed_counters


@pytest.fixture(scope="session")
def config(tmp_path_factory) -> BenchConfig:
    path = tmp_path_factory.mktemp("ormscope") / "bench.db"
    return BenchConfig(
        database_url=f"sqlite:///{path}",
        compute_timing=True,
        timing_posts=200,
    )


@pytest.fixture(scope="session")
def engine(config: BenchConfig) -> Generator[Engine, None, None]:
    """Create a database engine for performance tests."""
    sync_engine = create_engine(config, echo=False)
    try:
        yield sync_engine
    finally:
        sync_engine.dispose()


@pytest.fixture(scope="session")
def session_factory(engine: Engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture(scope="session", autouse=True)
def seeded_database(engine: Engine, session_factory, config: BenchConfig):
    """Seed the benchmark schema once for the whole session."""
    reset_schema(engine)
    with session_factory() as session:
        seed_associations(session, seed_counters(session, config))


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def quiet_harness_log():
    """Keep per-scenario log lines out of the measured loop."""
    harness_logger = logging.getLogger("ormscope.harness")
    level = harness_logger.level
    harness_logger.setLevel(logging.CRITICAL)
    try:
        yield harness_logger
    finally:
        harness_logger.setLevel(level)
