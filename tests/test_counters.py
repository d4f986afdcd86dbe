"""Test the ORM-level counter helpers."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from ormscope.counters import find_or_create, find_or_initialize, increment
from ormscope.models import Post, PostView, User


@pytest.fixture
def user_and_post(session: Session) -> tuple[User, Post]:
    user = User(name="John Doe")
    post = Post(user=user)
    session.add_all([user, post])
    session.commit()
    return user, post


def stored(session: Session, table: str, record_id: int):
    return session.execute(
        text(f"SELECT view_count FROM {table} WHERE id = :id"), {"id": record_id}
    ).scalar_one()


class TestFindOrInitialize:
    def test_returns_new_pending_instance(self, session: Session, user_and_post):
        user, post = user_and_post

        view = find_or_initialize(session, PostView, post=post, user=user)

        assert inspect(view).pending
        assert view.post is post
        assert view.user is user
        assert view.view_count == 0

    def test_returns_existing_row(self, session: Session, user_and_post):
        user, post = user_and_post
        existing = PostView(post=post, user=user, view_count=4)
        session.add(existing)
        session.commit()

        assert find_or_initialize(session, PostView, post=post, user=user) is existing


class TestFindOrCreate:
    def test_creates_and_commits(self, session: Session, user_and_post):
        user, post = user_and_post

        view = find_or_create(session, PostView, post=post, user=user)

        assert inspect(view).persistent
        assert session.execute(text("SELECT count(*) FROM post_views")).scalar_one() == 1

    def test_second_call_finds_the_first(self, session: Session, user_and_post):
        user, post = user_and_post

        first = find_or_create(session, PostView, post=post, user=user)
        second = find_or_create(session, PostView, post=post, user=user)

        assert first is second


class TestIncrement:
    def test_null_counter_counts_as_zero(self, session: Session, user_and_post):
        _, post = user_and_post
        assert post.view_count is None

        increment(session, post, "view_count")

        assert post.view_count == 1
        assert stored(session, "posts", post.id) == 1

    def test_increment_by(self, session: Session, user_and_post):
        user, post = user_and_post
        view = find_or_create(session, PostView, post=post, user=user)

        increment(session, view, "view_count")
        increment(session, view, "view_count", by=5)

        assert view.view_count == 6
        assert stored(session, "post_views", view.id) == 6

    def test_adds_to_the_stored_value(self, session: Session, user_and_post):
        """The arithmetic happens in SQL, so a stale in-memory value is not written back."""
        _, post = user_and_post
        session.execute(
            text("UPDATE posts SET view_count = 10 WHERE id = :id"), {"id": post.id}
        )
        session.commit()

        increment(session, post, "view_count")

        assert stored(session, "posts", post.id) == 11

    def test_leaves_nothing_to_flush(self, session: Session, user_and_post):
        _, post = user_and_post

        increment(session, post, "view_count")

        assert post not in session.dirty
