from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, and_, event
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    backref,
    configure_mappers,
    foreign,
    mapped_column,
    relationship,
    remote,
)


class Base(DeclarativeBase): ...


# Every relationship below writes images.illustrable_id
ILLUSTRABLE_RELATIONSHIPS = "images, illustrable_post, illustrable_comment"


class Illustrable:
    """Mixin for models that own images through the polymorphic ``images`` association.

    ``images.illustrable_type`` holds the owner's class name and
    ``images.illustrable_id`` its primary key, so there is no real foreign key
    behind the association. Each owner gets an ``images`` collection and the
    image gets an ``illustrable_<owner>`` reference back to it.
    """


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))

    posts: Mapped[list[Post]] = relationship(back_populates="user")
    post_views: Mapped[list[PostView]] = relationship(back_populates="user")


class Post(Illustrable, Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # No default on purpose: a fresh post has a NULL counter
    view_count: Mapped[Optional[int]] = mapped_column(Integer)

    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), index=True)
    user: Mapped[Optional[User]] = relationship(back_populates="posts")

    post_views: Mapped[list[PostView]] = relationship(back_populates="post")
    comments: Mapped[list[Comment]] = relationship(back_populates="post")


# Counter for one (post, user) pair
class PostView(Base):
    __tablename__ = "post_views"
    __table_args__ = (
        Index(
            "index_post_views_on_post_id_and_user_id",
            "post_id",
            "user_id",
            unique=True,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[Optional[int]] = mapped_column(ForeignKey("posts.id"), index=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), index=True)
    view_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    post: Mapped[Optional[Post]] = relationship(back_populates="post_views")
    user: Mapped[Optional[User]] = relationship(back_populates="post_views")

    def __init__(self, **kwargs: Any):
        # the column default only applies on INSERT; a new counter starts at 0 in memory too
        kwargs.setdefault("view_count", 0)
        super().__init__(**kwargs)


class Video(Base):
    __tablename__ = "videos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    comments: Mapped[list[VideoComment]] = relationship(back_populates="video")


# Single-table inheritance: every comment lives in "comments", "type" names the class
class Comment(Illustrable, Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(255))

    post_id: Mapped[Optional[int]] = mapped_column(ForeignKey("posts.id"), index=True)
    post: Mapped[Optional[Post]] = relationship(back_populates="comments")

    video_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("videos.id"), index=True
    )

    __mapper_args__ = {
        "polymorphic_on": "type",
        "polymorphic_identity": "Comment",
    }


class VideoComment(Comment):
    video: Mapped[Optional[Video]] = relationship(back_populates="comments")

    __mapper_args__ = {"polymorphic_identity": "VideoComment"}


class TextComment(Comment):
    __mapper_args__ = {"polymorphic_identity": "TextComment"}


class Image(Base):
    __tablename__ = "images"
    __table_args__ = (
        Index(
            "index_images_on_illustrable",
            "illustrable_type",
            "illustrable_id",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    illustrable_type: Mapped[Optional[str]] = mapped_column(String(255))
    illustrable_id: Mapped[Optional[int]] = mapped_column(Integer)

    def __init__(self, illustrable: Optional[Illustrable] = None, **kwargs: Any):
        super().__init__(**kwargs)
        if illustrable is not None:
            self.illustrable = illustrable

    @property
    def illustrable(self) -> Optional[Illustrable]:
        if self.illustrable_type is None:
            return None
        return getattr(self, f"illustrable_{self.illustrable_type.lower()}")

    @illustrable.setter
    def illustrable(self, owner: Illustrable) -> None:
        discriminator = illustrable_type_of(type(owner))
        self.illustrable_type = discriminator
        setattr(self, f"illustrable_{discriminator.lower()}", owner)


def illustrable_type_of(model: type[Any]) -> str:
    """Name stored in ``images.illustrable_type`` for ``model`` (its base class under STI)."""
    return model.__mapper__.base_mapper.class_.__name__


def illustrable_models() -> list[type[Illustrable]]:
    configure_mappers()
    return sorted(
        (
            mapper.class_
            for mapper in Base.registry.mappers
            if issubclass(mapper.class_, Illustrable) and mapper.inherits is None
        ),
        key=lambda model: model.__name__,
    )


@event.listens_for(Illustrable, "mapper_configured", propagate=True)
def _setup_images(mapper, class_) -> None:
    # STI subclasses share the base class association
    if mapper.inherits is not None:
        return

    discriminator = class_.__name__

    class_.images = relationship(
        Image,
        primaryjoin=and_(
            class_.id == foreign(remote(Image.illustrable_id)),
            Image.illustrable_type == discriminator,
        ),
        backref=backref(
            f"illustrable_{discriminator.lower()}",
            primaryjoin=remote(class_.id) == foreign(Image.illustrable_id),
            overlaps=ILLUSTRABLE_RELATIONSHIPS,
        ),
        overlaps=ILLUSTRABLE_RELATIONSHIPS,
    )

    @event.listens_for(class_.images, "append")
    def _append_image(target, value, initiator):
        value.illustrable_type = discriminator


__all__ = [
    "Base",
    "Comment",
    "Illustrable",
    "Image",
    "Post",
    "PostView",
    "TextComment",
    "User",
    "Video",
    "VideoComment",
    "illustrable_models",
    "illustrable_type_of",
]
