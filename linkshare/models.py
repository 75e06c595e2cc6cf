from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from linkshare.database import Base

VOTE_LIKE = "like"
VOTE_DISLIKE = "dislike"
VOTE_KINDS = (VOTE_LIKE, VOTE_DISLIKE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    # Relationships: lazy="raise" makes services eager-load what they render
    posts: Mapped[List["Post"]] = relationship(
        "Post", back_populates="author", lazy="raise"
    )


# ---------------------------------------------------------------------------
# Post
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    __table_args__ = (
        # Dashboard feed filtered by category, newest first
        Index("ix_posts_category_created_at", "category", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False, index=True)
    link: Mapped[str] = mapped_column(String(2048), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False, index=True
    )

    # Author reference; not enforced at the ORM level beyond the FK.
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    author: Mapped[Optional["User"]] = relationship(
        "User", back_populates="posts", lazy="raise"
    )
    votes: Mapped[List["Vote"]] = relationship(
        "Vote", back_populates="post", lazy="raise", order_by="Vote.created_at"
    )
    comments: Mapped[List["Comment"]] = relationship(
        "Comment", back_populates="post", lazy="raise", order_by="Comment.id"
    )


# ---------------------------------------------------------------------------
# Vote — one row per (post, user); kind decides which set the user is in
# ---------------------------------------------------------------------------
class Vote(Base):
    __tablename__ = "votes"

    __table_args__ = (
        CheckConstraint("kind IN ('like', 'dislike')", name="ck_votes_kind"),
    )

    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    kind: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    post: Mapped["Post"] = relationship("Post", back_populates="votes", lazy="raise")


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    post: Mapped["Post"] = relationship("Post", back_populates="comments", lazy="raise")
    author: Mapped[Optional["User"]] = relationship("User", lazy="raise")
