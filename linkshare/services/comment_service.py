"""
Comment service — capped, append-only comments on a Post.

Comments cannot be edited or deleted.  A post accepts at most
``settings.MAX_COMMENTS_PER_POST`` of them; the post row is locked while
counting so two concurrent comments cannot both take the last slot on
databases with row locks.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from linkshare.config import settings
from linkshare.models import Comment, Post
from linkshare.schemas import CommentCreate

logger = logging.getLogger(__name__)


class CommentLimitReachedError(Exception):
    """Raised when a post already holds the maximum number of comments."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__("Maximum comment limit reached")


async def count_comments(db: AsyncSession, post_id: int) -> int:
    q = select(func.count()).select_from(Comment).where(Comment.post_id == post_id)
    return (await db.execute(q)).scalar_one()


async def add_comment(
    db: AsyncSession,
    post_id: int,
    user_id: int,
    data: CommentCreate,
) -> dict | None:
    """
    Append a comment by *user_id* to the post identified by *post_id*.

    Returns the serialised comment dict on success, or None when the
    target post does not exist.  Raises CommentLimitReachedError when
    the post is already full.
    """
    q = select(Post).where(Post.id == post_id).with_for_update()
    result = await db.execute(q)
    post = result.scalar_one_or_none()
    if post is None:
        return None

    limit = settings.MAX_COMMENTS_PER_POST
    if await count_comments(db, post_id) >= limit:
        logger.info("Comment limit (%d) reached on post=%s", limit, post_id)
        raise CommentLimitReachedError(limit)

    comment = Comment(text=data.text, post_id=post_id, user_id=user_id)
    db.add(comment)
    await db.flush()

    return {
        "id": comment.id,
        "text": comment.text,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
    }
