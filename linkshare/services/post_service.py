"""
Post service — creation, the dashboard feed and title search.

Design notes
------------
- The dashboard feed goes through the cache-aside pattern (Redis →
  fallback to DB).  The key covers the search text and category filter;
  the router drops all feed keys once a post, vote or comment write
  has committed.
- Author (many-to-one) is loaded with ``joinedload``; votes and comments
  (one-to-many) with ``selectinload``, and comment authors with a
  chained ``selectinload`` so rendering never triggers lazy loads.
- Title search is a literal, case-insensitive substring match: LIKE
  wildcards in the user's text are escaped.
- Service functions flush but do not commit; write routes commit
  before responding and ``get_db`` owns every other transaction.
"""
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from linkshare.cache import cache
from linkshare.config import settings
from linkshare.models import VOTE_DISLIKE, VOTE_LIKE, Comment, Post
from linkshare.schemas import ALL_CATEGORIES, PostCreate, normalize_category

_LIKE_ESCAPE = "\\"


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def _escape_like(text: str) -> str:
    return (
        text.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def _title_contains(search: str):
    return Post.title.ilike(f"%{_escape_like(search)}%", escape=_LIKE_ESCAPE)


def _post_query():
    """
    Base SELECT for posts with everything a view needs eagerly loaded.

    ``populate_existing`` refreshes posts already in the session's
    identity map, whose collections may predate votes or comments added
    earlier in the same transaction.
    """
    return (
        select(Post)
        .options(
            joinedload(Post.author),
            selectinload(Post.votes),
            selectinload(Post.comments).selectinload(Comment.author),
        )
        .execution_options(populate_existing=True)
    )


def _newest_first(q):
    return q.order_by(desc(Post.created_at), desc(Post.id))


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _serialize_author(author) -> dict | None:
    if author is None:
        return None
    return {"id": author.id, "username": author.username}


def post_to_dict(post: Post) -> dict:
    """Serialise a Post with its votes and comments to a plain dict."""
    return {
        "id": post.id,
        "title": post.title,
        "link": post.link,
        "category": post.category,
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "user_id": post.user_id,
        "author": _serialize_author(post.author),
        "likes": [v.user_id for v in post.votes if v.kind == VOTE_LIKE],
        "dislikes": [v.user_id for v in post.votes if v.kind == VOTE_DISLIKE],
        "comments": [
            {
                "id": c.id,
                "text": c.text,
                "user_id": c.user_id,
                "author": _serialize_author(c.author),
                "created_at": c.created_at.isoformat() if c.created_at else None,
            }
            for c in post.comments
        ],
    }


def group_by_category(posts: list[dict]) -> dict[str, list[dict]]:
    """
    Group serialised posts by category.

    Categories appear in the order of their first post, and posts keep
    their incoming order inside each group.
    """
    grouped: dict[str, list[dict]] = {}
    for post in posts:
        grouped.setdefault(post["category"], []).append(post)
    return grouped


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_post(db: AsyncSession, user_id: int, data: PostCreate) -> dict:
    """Create a post with no votes or comments authored by *user_id*."""
    post = Post(
        title=data.title,
        link=data.link,
        category=data.category,
        user_id=user_id,
    )
    db.add(post)
    await db.flush()

    return {
        "id": post.id,
        "title": post.title,
        "link": post.link,
        "category": post.category,
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "user_id": post.user_id,
        "likes": [],
        "dislikes": [],
        "comments": [],
    }


async def get_post(db: AsyncSession, post_id: int) -> dict | None:
    """Return the serialised post, or None when it does not exist."""
    result = await db.execute(_post_query().where(Post.id == post_id))
    post = result.unique().scalar_one_or_none()
    return post_to_dict(post) if post else None


async def get_feed(
    db: AsyncSession,
    search: str | None = None,
    category: str | None = None,
) -> dict[str, list[dict]]:
    """
    Return the dashboard feed: posts newest first, grouped by category.

    *search* filters on a case-insensitive title substring; *category*
    filters on an exact (whitespace-normalised) label unless it is empty
    or the ``All`` sentinel.
    """
    search = (search or "").strip()
    category = normalize_category(category or "")
    if category == ALL_CATEGORIES:
        category = ""

    cache_key = cache.feed_key(search, category)
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    q = _post_query()
    if search:
        q = q.where(_title_contains(search))
    if category:
        q = q.where(Post.category == category)

    result = await db.execute(_newest_first(q))
    posts = [post_to_dict(p) for p in result.unique().scalars().all()]

    grouped = group_by_category(posts)
    await cache.set(cache_key, grouped, ttl=settings.CACHE_TTL_FEED)
    return grouped


async def search_posts(db: AsyncSession, search: str | None) -> list[dict]:
    """
    Return every post whose title contains *search*, newest first,
    regardless of category.  An empty search matches all posts.
    """
    q = _post_query()
    search = (search or "").strip()
    if search:
        q = q.where(_title_contains(search))

    result = await db.execute(_newest_first(q))
    return [post_to_dict(p) for p in result.unique().scalars().all()]


async def list_categories(db: AsyncSession) -> list[str]:
    """Distinct category labels in use, alphabetically."""
    q = select(Post.category).distinct().order_by(Post.category)
    result = await db.execute(q)
    return list(result.scalars().all())
