"""Blog router: post CRUD plus public view, reaction and comment actions."""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from portfolio_api import store
from portfolio_api.auth import get_admin_session, has_admin_session
from portfolio_api.database import get_db
from portfolio_api.errors import NotFoundError, ValidationError
from portfolio_api.rate_limit import (
    RateLimiter,
    enforce_rate_limit,
    get_client_ip,
    get_create_blog_limiter,
)
from portfolio_api.schemas import BlogPostCreate, BlogPostUpdate, EngagementRequest

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blogs", tags=["Blog"])

COMMENT_NAME_MAX = 80
COMMENT_CONTENT_MAX = 2000


def require_create_quota(
    request: Request,
    limiter: RateLimiter = Depends(get_create_blog_limiter),
) -> None:
    """Dependency limiting post creation to 10 per hour per IP."""
    enforce_rate_limit(limiter, f"create-blog:ip:{get_client_ip(request)}")


@router.get("")
def list_posts(
    limit: int = Query(50, ge=1, le=100),
    last_key: Optional[str] = Query(None, alias="lastKey"),
    q: Optional[str] = None,
    tag: Optional[str] = None,
    is_admin: bool = Depends(has_admin_session),
    db: Session = Depends(get_db),
):
    """
    List blog posts, newest first.

    Drafts are included only when a valid admin session is presented.

    Args:
        limit: Page size
        last_key: Cursor returned by the previous page
        q: Case-insensitive text to match in title, excerpt, content or tags
        tag: Exact tag to match
        is_admin: Whether the caller presented a valid session
        db: Database session

    Returns:
        dict: ``blogs``, ``lastKey`` (None on the last page) and ``count``
    """
    logger.info(f"Listing blog posts (admin={is_admin}, q={q!r}, tag={tag!r})")

    post_filter = store.PostFilter(include_drafts=is_admin, q=q or None, tag=tag or None)
    try:
        page = store.list_posts(db, post_filter, limit=limit, last_key=last_key)
    except ValueError as e:
        logger.warning(f"Invalid pagination cursor: {e}")
        raise ValidationError("Invalid lastKey")

    blogs = [post.to_dict() for post in page.items]
    return {"blogs": blogs, "lastKey": page.last_key, "count": len(blogs)}


@router.get("/{post_id}")
def get_post(post_id: str, db: Session = Depends(get_db)):
    """
    Get a single blog post.

    Raises:
        NotFoundError: If the post does not exist
    """
    post = store.get_post(db, post_id)
    if post is None:
        logger.warning(f"Blog post not found: {post_id}")
        raise NotFoundError("Blog post not found")
    return post.to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_post(
    blog: BlogPostCreate,
    _quota: None = Depends(require_create_quota),
    _session: str = Depends(get_admin_session),
    db: Session = Depends(get_db),
):
    """
    Create a blog post.

    Requires a valid admin session. Defaults: status ``published``,
    reading time ``5 min``, no tags or references.

    Returns:
        dict: Success flag and the created post
    """
    post = store.create_post(db, blog.model_dump())
    logger.info(f"Blog post created: {post.id}")
    return {"success": True, "blog": post.to_dict()}


@router.put("/{post_id}")
def update_post(
    post_id: str,
    update_data: BlogPostUpdate,
    _session: str = Depends(get_admin_session),
    db: Session = Depends(get_db),
):
    """
    Update the provided fields of a blog post.

    Raises:
        ValidationError: If no updatable field was provided
        NotFoundError: If the post does not exist
    """
    fields = update_data.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise ValidationError("No fields to update")

    post = store.update_post(db, post_id, fields)
    if post is None:
        logger.warning(f"Blog post not found for update: {post_id}")
        raise NotFoundError("Blog post not found")

    logger.info(f"Blog post {post_id} updated: {sorted(fields)}")
    return {"success": True, "blog": post.to_dict()}


@router.delete("/{post_id}")
def delete_post(
    post_id: str,
    _session: str = Depends(get_admin_session),
    db: Session = Depends(get_db),
):
    """Delete a blog post. Deleting an id that is already gone still succeeds."""
    if store.delete_post(db, post_id):
        logger.info(f"Blog post deleted: {post_id}")
    else:
        logger.info(f"Delete requested for missing blog post: {post_id}")
    return {"success": True, "message": "Blog post deleted successfully"}


@router.post("/{post_id}")
def engage(
    post_id: str,
    action: Optional[str] = None,
    payload: Optional[EngagementRequest] = None,
    db: Session = Depends(get_db),
):
    """
    Public engagement actions selected by ``?action=``.

    - ``view``: add one to the view counter
    - ``react``: add one to ``reactions[emoji]``
    - ``comment``: append a comment; a filled ``website`` honeypot is
      acknowledged with 202 and nothing is stored

    Raises:
        ValidationError: If the action or its fields are invalid
        NotFoundError: If the post does not exist
    """
    payload = payload or EngagementRequest()

    if action == "view":
        views = store.increment_views(db, post_id)
        if views is None:
            raise NotFoundError("Blog post not found")
        return {"success": True, "views": views}

    if action == "react":
        emoji = (payload.emoji or "").strip()
        if not emoji:
            raise ValidationError("Emoji is required", {"required": ["emoji"]})
        reactions = store.increment_reaction(db, post_id, emoji)
        if reactions is None:
            raise NotFoundError("Blog post not found")
        return {"success": True, "reactions": reactions}

    if action == "comment":
        if payload.website:
            logger.info(f"Honeypot filled on comment for {post_id}, discarding")
            return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content={"success": True})

        name = (payload.name or "").strip()[:COMMENT_NAME_MAX]
        content = (payload.content or "").strip()[:COMMENT_CONTENT_MAX]
        missing = [field for field, value in (("name", name), ("content", content)) if not value]
        if missing:
            raise ValidationError("Missing required fields", {"required": missing})

        comments = store.append_comment(db, post_id, name, content)
        if comments is None:
            raise NotFoundError("Blog post not found")
        logger.info(f"Comment added to {post_id}")
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={"success": True, "comments": comments},
        )

    raise ValidationError("Invalid action", {"allowed": ["view", "react", "comment"]})
