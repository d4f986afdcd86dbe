from __future__ import annotations

import contextlib
import logging
from typing import Any, Iterator

import sqlalchemy
from sqlalchemy import Engine, MetaData, event

from ormscope.config import BenchConfig
from ormscope.models import Base

logger = logging.getLogger(__name__)


def create_engine(config: BenchConfig, **kwargs: Any) -> Engine:
    """Create the engine for ``config.database_url``.

    SQL echo goes through the ``sqlalchemy.engine`` logger (see ``ormscope.log``)
    rather than ``echo=True``, which would attach a second handler.
    """
    kwargs.setdefault("future", True)
    return sqlalchemy.create_engine(config.database_url, **kwargs)


def reset_schema(engine: Engine) -> None:
    """Drop every table in the database, then create the benchmark tables."""
    existing = MetaData()
    existing.reflect(bind=engine)
    with engine.begin() as conn:
        if existing.tables:
            logger.debug("Dropping tables: %s", ", ".join(sorted(existing.tables)))
        existing.drop_all(conn)
        Base.metadata.create_all(conn)


class QueryTally:
    __slots__ = ("count", "statements")

    def __init__(self) -> None:
        self.count = 0
        self.statements: list[str] = []


class QueryCounter:
    """Counts statements executed on ``engine`` while a ``track()`` block is open."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._tallies: list[QueryTally] = []
        event.listen(engine, "before_cursor_execute", self._before_cursor_execute)

    def close(self) -> None:
        if event.contains(
            self.engine, "before_cursor_execute", self._before_cursor_execute
        ):
            event.remove(
                self.engine, "before_cursor_execute", self._before_cursor_execute
            )

    @contextlib.contextmanager
    def track(self) -> Iterator[QueryTally]:
        tally = QueryTally()
        self._tallies.append(tally)
        try:
            yield tally
        finally:
            self._tallies.remove(tally)

    def _before_cursor_execute(
        self, conn, cursor, statement, parameters, context, executemany
    ) -> None:
        for tally in self._tallies:
            tally.count += 1
            tally.statements.append(statement)
