from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ormscope.config import BenchConfig
from ormscope.models import (
    Comment,
    Image,
    Post,
    TextComment,
    User,
    Video,
    VideoComment,
)

logger = logging.getLogger(__name__)


@dataclass
class CounterFixtures:
    """Rows the counter scenarios work on: one user and a post per approach."""

    user: User
    post1: Post
    post2: Post
    post3: Post


@dataclass
class AssociationFixtures:
    comment: Comment
    video_comment: VideoComment
    text_comment: TextComment
    video_comment2: VideoComment
    text_comment2: TextComment
    images: list[Image]


def seed_counters(session: Session, config: BenchConfig) -> CounterFixtures:
    user = User(name="John Doe")
    session.add(user)
    session.commit()

    if config.compute_timing and config.timing_posts:
        logger.debug("Seeding %d posts with images", config.timing_posts)
        for _ in range(config.timing_posts):
            post = Post(user=user)
            session.add(post)
            session.add(Image(illustrable=post))
        session.commit()

    posts = [Post(user=user) for _ in range(3)]
    session.add_all(posts)
    session.commit()

    return CounterFixtures(user, *posts)


def seed_associations(
    session: Session, counters: CounterFixtures
) -> AssociationFixtures:
    post1, post2 = counters.post1, counters.post2

    comment = Comment(post=post1)
    video_comment = VideoComment(post=post1, video=Video())
    text_comment = TextComment(post=post1)
    video_comment2 = VideoComment(post=post2, video=Video())
    text_comment2 = TextComment(post=post2)
    session.add_all([comment, video_comment, text_comment, video_comment2, text_comment2])
    session.commit()

    images = [
        Image(illustrable=post1),
        Image(illustrable=post2),
        Image(illustrable=comment),
    ]
    session.add_all(images)
    session.commit()

    return AssociationFixtures(
        comment=comment,
        video_comment=video_comment,
        text_comment=text_comment,
        video_comment2=video_comment2,
        text_comment2=text_comment2,
        images=images,
    )
