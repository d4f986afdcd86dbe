"""Association lookup and explicit preloading on top of SQLAlchemy loader options."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Iterable, Optional, Sequence

from sqlalchemy import inspect, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from ormscope.models import Image, illustrable_models

LoaderStrategy = Callable[..., Any]


class AssociationNotFound(LookupError):
    def __init__(self, model: type[Any], name: str) -> None:
        super().__init__(f"Association named '{name}' was not found on {model.__name__}")
        self.model = model
        self.name = name


def association(model: type[Any], name: str) -> InstrumentedAttribute[Any]:
    """Return the relationship attribute ``name`` of ``model``.

    Only relationships declared on ``model`` itself (or inherited from its
    base classes) count; a relationship that exists on an STI subclass is not
    an association of the base class.
    """
    if name not in inspect(model).relationships:
        raise AssociationNotFound(model, name)
    return getattr(model, name)


def illustrable_loaders(
    strategy: LoaderStrategy, nested: Optional[str] = None, strict: bool = True
) -> list[Any]:
    """One loader option per illustrable owner of ``Image``.

    ``strategy`` is a SQLAlchemy loader function such as ``selectinload`` or
    ``joinedload``. With ``nested``, each option is chained to that
    association of the owner; every owner must have it unless ``strict`` is
    false, in which case owners without it are loaded without the chain.
    """
    loaders = []
    for owner in illustrable_models():
        loader = strategy(association(Image, f"illustrable_{owner.__name__.lower()}"))
        if nested is not None and (strict or nested in inspect(owner).relationships):
            loader = getattr(loader, strategy.__name__)(association(owner, nested))
        loaders.append(loader)
    return loaders


def preload(
    session: Session, records: Iterable[Any], name: str, strategy: LoaderStrategy
) -> Sequence[Any]:
    """Load association ``name`` for ``records`` that are already in ``session``.

    Records are grouped by class; every class that has the association gets
    one query loading its records with ``strategy``, refreshing the instances
    already present in the identity map. Returns the records that were loaded.
    """
    by_model: dict[type[Any], list[Any]] = defaultdict(list)
    for record in records:
        by_model[type(record)].append(record)

    loaded: list[Any] = []
    for model, group in by_model.items():
        attribute = association(model, name)
        primary_key = inspect(model).primary_key
        if len(primary_key) != 1:
            raise ValueError(f"{model.__name__} must have a single-column primary key")

        ids = [inspect(record).identity[0] for record in group]
        loaded.extend(
            session.scalars(
                select(model)
                .where(primary_key[0].in_(ids))
                .options(strategy(attribute))
                .execution_options(populate_existing=True)
            )
        )
    return loaded
