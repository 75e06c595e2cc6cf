"""
Vote service — like / dislike toggles on a Post.

A user holds at most one Vote row per post (composite primary key), and
its ``kind`` says whether the user is in the post's likes or dislikes.
Switching sides therefore flips the row in place, which removes the user
from the opposite set and adds them to the target set in one write.

The post row is locked with ``SELECT ... FOR UPDATE`` for the rest of the
transaction so concurrent toggles on the same post serialise on
databases that support row locks.  Where they do not, a racing insert
trips the primary key and is reported as the same conflict as a repeat
vote.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkshare.models import VOTE_DISLIKE, VOTE_KINDS, VOTE_LIKE, Post, Vote

logger = logging.getLogger(__name__)


class DuplicateVoteError(Exception):
    """Raised when the user already holds a vote of the requested kind."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"You have already {kind}d this post")


async def _lock_post(db: AsyncSession, post_id: int) -> Post | None:
    q = select(Post).where(Post.id == post_id).with_for_update()
    result = await db.execute(q)
    return result.scalar_one_or_none()


async def cast_vote(db: AsyncSession, post_id: int, user_id: int, kind: str) -> dict | None:
    """
    Record *user_id*'s *kind* vote on *post_id*.

    Returns ``{"post_id", "likes", "dislikes"}`` with the post's vote sets
    after the change, or None when the post does not exist.  Raises
    DuplicateVoteError when the user already holds a *kind* vote.
    """
    if kind not in VOTE_KINDS:
        raise ValueError(f"unknown vote kind {kind!r}")

    post = await _lock_post(db, post_id)
    if post is None:
        return None

    vote = await db.get(Vote, (post_id, user_id))
    if vote is not None and vote.kind == kind:
        logger.info("Duplicate %s by user=%s on post=%s", kind, user_id, post_id)
        raise DuplicateVoteError(kind)

    if vote is not None:
        vote.kind = kind
    else:
        db.add(Vote(post_id=post_id, user_id=user_id, kind=kind))

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info("Concurrent %s by user=%s on post=%s", kind, user_id, post_id)
        raise DuplicateVoteError(kind) from None

    return await get_vote_sets(db, post_id)


async def like_post(db: AsyncSession, post_id: int, user_id: int) -> dict | None:
    return await cast_vote(db, post_id, user_id, VOTE_LIKE)


async def dislike_post(db: AsyncSession, post_id: int, user_id: int) -> dict | None:
    return await cast_vote(db, post_id, user_id, VOTE_DISLIKE)


async def get_vote_sets(db: AsyncSession, post_id: int) -> dict:
    """Return the user ids in *post_id*'s likes and dislikes sets."""
    q = select(Vote.user_id, Vote.kind).where(Vote.post_id == post_id).order_by(Vote.created_at)
    rows = (await db.execute(q)).all()
    return {
        "post_id": post_id,
        "likes": [uid for uid, k in rows if k == VOTE_LIKE],
        "dislikes": [uid for uid, k in rows if k == VOTE_DISLIKE],
    }
