"""ORM-level counter helpers.

These are the "high-level helper" side of the counter comparisons: look up or
build the counter row through the session, then bump it.
"""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import func, inspect, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

T = TypeVar("T")


def find_or_initialize(session: Session, model: type[T], **criteria: Any) -> T:
    """Return the first ``model`` row matching ``criteria`` or a new pending one."""
    instance = session.scalars(select(model).filter_by(**criteria).limit(1)).first()
    if instance is None:
        instance = model(**criteria)
        session.add(instance)
    return instance


def find_or_create(session: Session, model: type[T], **criteria: Any) -> T:
    """Like ``find_or_initialize`` but the new row is inserted and committed."""
    instance = find_or_initialize(session, model, **criteria)
    if inspect(instance).pending:
        session.commit()
    return instance


def increment(session: Session, record: Any, attribute: str, by: int = 1) -> Any:
    """Add ``by`` to ``record.<attribute>`` in the database and in memory.

    A NULL counter counts as zero. Only the one column is written, with a
    single ``UPDATE`` that does the arithmetic in SQL, and the change is
    committed straight away.
    """
    model = type(record)
    column = getattr(model, attribute)
    primary_key = zip(inspect(model).primary_key, inspect(record).identity)

    current = getattr(record, attribute)
    session.execute(
        update(model)
        .where(*(col == value for col, value in primary_key))
        .values({attribute: func.coalesce(column, 0) + by})
        .execution_options(synchronize_session=False)
    )
    # committed, so the next flush does not write it a second time
    set_committed_value(record, attribute, (current or 0) + by)
    session.commit()
    return record
