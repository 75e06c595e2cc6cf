import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from linkshare.cache import cache
from linkshare.config import settings
from linkshare.database import get_db
from linkshare.dependencies import current_user
from linkshare.schemas import (
    ALL_CATEGORIES,
    CommentCreate,
    PostCreate,
    SessionUser,
    describe_validation_error,
)
from linkshare.services import comment_service, post_service, vote_service
from linkshare.services.comment_service import CommentLimitReachedError
from linkshare.services.vote_service import DuplicateVoteError
from linkshare.templating import render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["posts"])

POST_NOT_FOUND = "Post not found"


def _to_dashboard() -> RedirectResponse:
    return RedirectResponse("/dashboard", status_code=303)


async def _commit_write(db: AsyncSession) -> None:
    """
    Commit a post, vote or comment write, then drop the cached feeds.

    Must finish before the redirect goes out, or the follow-up dashboard
    read can re-cache the feed as it was before the write.
    """
    await db.commit()
    await cache.invalidate_posts()


@router.get("/")
async def index():
    return _to_dashboard()


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    search: str | None = None,
    category: str | None = None,
    user: SessionUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    context = {
        "user": user,
        "posts": {},
        "categories": [],
        "error": None,
        "search": search or "",
        "selected_category": category or ALL_CATEGORIES,
        "all_categories": ALL_CATEGORIES,
        "max_comments": settings.MAX_COMMENTS_PER_POST,
    }
    try:
        context["posts"] = await post_service.get_feed(db, search, category)
        context["categories"] = await post_service.list_categories(db)
    except SQLAlchemyError:
        logger.exception("Error fetching posts")
        await db.rollback()
        context.update(posts={}, error="Error fetching posts", search="", selected_category=ALL_CATEGORIES)
        return render(request, "dashboard.html", context, status_code=500)

    return render(request, "dashboard.html", context)


@router.get("/search", response_class=HTMLResponse)
async def search_page(request: Request, search: str = "", db: AsyncSession = Depends(get_db)):
    results = await post_service.search_posts(db, search)
    return render(request, "search_results.html", {"results": results, "search": search})


@router.post("/post-description")
@router.post("/post-link")
async def submit_post(
    title: str = Form(""),
    link: str = Form(""),
    category: str = Form(""),
    user: SessionUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = PostCreate(title=title, link=link, category=category)
    except ValidationError as exc:
        return PlainTextResponse(f"Invalid post: {describe_validation_error(exc)}", status_code=400)

    post = await post_service.create_post(db, user.id, data)
    await _commit_write(db)
    logger.info("User %s posted %s in %r", user.id, post["id"], post["category"])
    return _to_dashboard()


async def _vote(vote, db: AsyncSession, post_id: int, user: SessionUser):
    try:
        result = await vote(db, post_id, user.id)
    except DuplicateVoteError as exc:
        return PlainTextResponse(str(exc), status_code=400)
    if result is None:
        return PlainTextResponse(POST_NOT_FOUND, status_code=404)
    await _commit_write(db)
    return _to_dashboard()


@router.get("/like-post/{post_id}")
async def like_post(
    post_id: int,
    user: SessionUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _vote(vote_service.like_post, db, post_id, user)


@router.get("/dislike-post/{post_id}")
async def dislike_post(
    post_id: int,
    user: SessionUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _vote(vote_service.dislike_post, db, post_id, user)


@router.post("/comment/{post_id}")
async def comment(
    post_id: int,
    text: str = Form(""),
    user: SessionUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = CommentCreate(text=text)
    except ValidationError as exc:
        return PlainTextResponse(f"Invalid comment: {describe_validation_error(exc)}", status_code=400)

    try:
        created = await comment_service.add_comment(db, post_id, user.id, data)
    except CommentLimitReachedError as exc:
        return PlainTextResponse(str(exc), status_code=400)
    if created is None:
        return PlainTextResponse(POST_NOT_FOUND, status_code=404)
    await _commit_write(db)
    return _to_dashboard()
