"""The benchmark catalogue and the driver that runs it.

Scenarios are grouped the way they are compared:

- counters: bump ``posts.view_count`` directly, or a ``post_views`` row for
  the (post, user) pair, using plain attribute writes, the ``increment``
  helper, and raw SQL;
- polymorphism: load ``Image.illustrable`` (a post or a comment) with and
  without nested associations;
- STI: load ``Post.comments`` where comments are ``VideoComment`` /
  ``TextComment`` rows in one table.

Some scenarios are expected to fail (a NULL counter bumped naively, a nested
association the polymorphic owner does not have); the harness records those
as failures and the run carries on.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from sqlalchemy import Engine, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import (
    Session,
    joinedload,
    selectinload,
    sessionmaker,
    with_polymorphic,
)

from ormscope.config import BenchConfig
from ormscope.counters import find_or_create, find_or_initialize, increment
from ormscope.database import QueryCounter, create_engine, reset_schema
from ormscope.harness import Harness, ScenarioResult, Work
from ormscope.loading import association, illustrable_loaders, preload
from ormscope.models import Comment, Image, Post, PostView, VideoComment
from ormscope.seed import CounterFixtures, seed_associations, seed_counters

logger = logging.getLogger(__name__)

Catalogue = list[tuple[str, Work]]


def rolls_back(session: Session, work: Work) -> Work:
    """Wrap ``work`` so a database failure leaves ``session`` usable for the next scenario.

    Errors raised before anything reached the database keep the transaction,
    and the loaded instances, as they are.
    """

    def run() -> Any:
        try:
            return work()
        except Exception as exc:
            if isinstance(exc, SQLAlchemyError) or not session.is_active:
                session.rollback()
            raise

    return run


def loads(
    session: Session,
    model: type[Any],
    options: Callable[[], list[Any]],
    unique: bool = False,
) -> Work:
    """Work that selects every ``model`` row with the loader ``options``.

    ``options`` is called inside the work so that an unknown association
    fails the scenario instead of the catalogue.
    """

    def work() -> list[Any]:
        result = session.scalars(select(model).options(*options()))
        return list(result.unique() if unique else result)

    return work


def counter_scenarios(session: Session, fixtures: CounterFixtures) -> Catalogue:
    user, post1, post2, post3 = (
        fixtures.user,
        fixtures.post1,
        fixtures.post2,
        fixtures.post3,
    )

    def direct_naive() -> None:
        post1.view_count += 1
        session.commit()

    def indirect_naive() -> None:
        post_view = find_or_initialize(session, PostView, post=post1, user=user)
        post_view.view_count += 1
        session.commit()

    def direct_increment() -> None:
        increment(session, post2, "view_count")

    def indirect_increment() -> None:
        post_view = find_or_create(session, PostView, post=post2, user=user)
        increment(session, post_view, "view_count")

    def direct_raw() -> None:
        session.execute(
            text("UPDATE posts SET view_count = view_count + 1 WHERE id = :id"),
            {"id": post3.id},
        )
        session.commit()

    def indirect_raw() -> None:
        session.execute(
            text(
                "INSERT INTO post_views (post_id, user_id, view_count) "
                "VALUES (:post_id, :user_id, 1) "
                "ON CONFLICT (post_id, user_id) DO "
                "UPDATE SET view_count = post_views.view_count + 1"
            ),
            {"post_id": post3.id, "user_id": user.id},
        )
        session.commit()

    def find_by() -> None:
        # a session of its own, so the many-to-one is not answered from the
        # identity map that already holds the user
        with Session(session.get_bind()) as cold:
            post = cold.scalars(select(Post).filter_by(user=user).limit(1)).first()
            post.user

    def create_through_association() -> None:
        # built off the user and never added to the session
        post = Post(user=user)
        post.user
        # the backref queued the post on user.posts; a later flush would insert it
        session.expire(user, ["posts"])

    return [
        ("direct - naive", direct_naive),
        ("indirect - naive", indirect_naive),
        ("direct - increment", direct_increment),
        ("indirect - increment", indirect_increment),
        ("direct - raw", direct_raw),
        ("indirect - raw", indirect_raw),
        ("find_by", find_by),
        ("create through association", create_through_association),
    ]


def polymorphism_scenarios(session: Session, config: BenchConfig) -> Catalogue:
    catalogue: Catalogue = [
        (
            "includes with polymorphic",
            loads(session, Image, lambda: illustrable_loaders(selectinload)),
        ),
        (
            "sub-includes with polymorphism",
            loads(
                session,
                Image,
                lambda: illustrable_loaders(selectinload, nested="comments"),
            ),
        ),
        (
            "sub-includes with polymorphism, where declared",
            loads(
                session,
                Image,
                lambda: illustrable_loaders(
                    selectinload, nested="comments", strict=False
                ),
            ),
        ),
    ]
    if config.eager_loading:
        catalogue += [
            (
                "eager_load with polymorphic",
                loads(session, Image, lambda: illustrable_loaders(joinedload)),
            ),
            (
                "sub-eager_load with polymorphism",
                loads(
                    session,
                    Image,
                    lambda: illustrable_loaders(joinedload, nested="comments"),
                    unique=True,
                ),
            ),
        ]
    return catalogue


def sti_scenarios(session: Session, config: BenchConfig) -> Catalogue:
    # every comment, with VideoComment attributes addressable for loader options
    comments = with_polymorphic(Comment, [VideoComment])

    def preloader() -> None:
        posts = session.scalars(
            select(Post).options(selectinload(Post.comments))
        ).all()
        video_comments = [
            comment
            for post in posts
            for comment in post.comments
            if isinstance(comment, VideoComment)
        ]
        preload(session, video_comments, "video", selectinload)

    catalogue: Catalogue = [
        (
            "includes with STI",
            loads(session, Post, lambda: [selectinload(Post.comments)]),
        ),
        (
            "sub-includes with STI",
            loads(
                session,
                Post,
                lambda: [
                    selectinload(Post.comments).selectinload(
                        association(Comment, "video")
                    )
                ],
            ),
        ),
        (
            "sub-includes with STI, with_polymorphic",
            loads(
                session,
                Post,
                lambda: [
                    selectinload(Post.comments.of_type(comments)).selectinload(
                        comments.VideoComment.video
                    )
                ],
            ),
        ),
        ("preloader with STI", preloader),
    ]
    if config.eager_loading:
        catalogue += [
            (
                "eager_load with STI",
                loads(session, Post, lambda: [joinedload(Post.comments)], unique=True),
            ),
            (
                "sub-eager_load with STI",
                loads(
                    session,
                    Post,
                    lambda: [
                        joinedload(Post.comments).joinedload(
                            association(Comment, "video")
                        )
                    ],
                    unique=True,
                ),
            ),
        ]
    return catalogue


def log_summary(results: list[ScenarioResult]) -> None:
    logger.info("\n=== summary ===\n")
    width = max((len(r.title) for r in results), default=0)
    for r in results:
        if r.succeeded:
            status = "ok"
        else:
            status = f"{r.outcome.error_kind}: {r.outcome.error_message}"
        queries = "-" if r.queries is None else str(r.queries)
        logger.info(
            "%s %6dms %4s queries  %s", r.title.ljust(width), r.elapsed_ms, queries, status
        )


def run_suite(
    config: BenchConfig,
    engine: Optional[Engine] = None,
    harness: Optional[Harness] = None,
) -> list[ScenarioResult]:
    """Reset the database, seed it and run every scenario in catalogue order.

    ``engine`` and ``harness`` default to ones built from ``config``; an engine
    passed in is left open for the caller.
    """
    owns_engine = engine is None
    if engine is None:
        engine = create_engine(config)

    counter = QueryCounter(engine) if config.count_queries and harness is None else None
    if harness is None:
        harness = Harness(query_counter=counter)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    try:
        reset_schema(engine)
        with session_factory() as session:

            def run(catalogue: Catalogue) -> list[ScenarioResult]:
                return harness.run_all(
                    (title, rolls_back(session, work)) for title, work in catalogue
                )

            fixtures = seed_counters(session, config)
            results = run(counter_scenarios(session, fixtures))

            seed_associations(session, fixtures)

            harness.section("polymorphism")
            results += run(polymorphism_scenarios(session, config))

            harness.section("STI")
            results += run(sti_scenarios(session, config))
    finally:
        if counter is not None:
            counter.close()
        if owns_engine:
            engine.dispose()

    log_summary(results)
    return results
