"""
Durable store adapter.

All persistence goes through these functions so that counters and comment
appends are applied by the database (``views = views + 1``, row INSERTs)
rather than computed by the caller.
"""

import json
import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import quote, unquote

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portfolio_api.models import (
    AuthCode,
    BlogComment,
    BlogPost,
    BlogReaction,
    ContactMessage,
    RateLimitRecord,
)

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def iso_now() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_id(prefix: str) -> str:
    """Build a time-based id such as ``blog_1700000000000_k3j9x0a1b``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{now_ms()}_{suffix}"


# ---------------------------------------------------------------------------
# One-time codes
# ---------------------------------------------------------------------------


def save_auth_code(db: Session, code: str, expires_at: int, created_at: int) -> AuthCode:
    auth_code = AuthCode(code=code, expires_at=expires_at, created_at=created_at, used=False)
    db.add(auth_code)
    db.commit()
    return auth_code


def get_auth_code(db: Session, code: str) -> Optional[AuthCode]:
    return db.query(AuthCode).filter(AuthCode.code == code).first()


def consume_auth_code(db: Session, code: str) -> bool:
    """
    Delete a code if it is still present.

    Returns:
        bool: True if this call removed the row, False if it was already gone
    """
    deleted = (
        db.query(AuthCode)
        .filter(AuthCode.code == code)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted == 1


# ---------------------------------------------------------------------------
# Blog posts
# ---------------------------------------------------------------------------


@dataclass
class PostFilter:
    """Criteria applied when listing posts."""

    include_drafts: bool = False
    q: Optional[str] = None
    tag: Optional[str] = None

    def matches(self, post: BlogPost) -> bool:
        tags = post.tags or []
        if self.tag and self.tag not in tags:
            return False
        if self.q:
            needle = self.q.lower()
            haystacks = [post.title, post.excerpt, post.content] + list(tags)
            if not any(needle in (h or "").lower() for h in haystacks):
                return False
        return True


@dataclass
class PostPage:
    """One page of posts plus the cursor for the next page."""

    items: List[BlogPost] = field(default_factory=list)
    last_key: Optional[str] = None


def encode_last_key(post: BlogPost) -> str:
    return quote(json.dumps({"id": post.id, "date": post.date}))


def decode_last_key(last_key: str) -> dict:
    """
    Decode a pagination cursor.

    Raises:
        ValueError: If the cursor is not one produced by encode_last_key
    """
    try:
        data = json.loads(unquote(last_key))
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed cursor: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("id"), str) or not isinstance(data.get("date"), str):
        raise ValueError("Cursor must contain id and date")
    return data


def list_posts(db: Session, post_filter: PostFilter, limit: int = 50, last_key: Optional[str] = None) -> PostPage:
    """
    Return posts newest first, filtered and paginated.

    Status filtering happens in the query; text and tag matching is applied
    to the scanned rows in Python.

    Raises:
        ValueError: If last_key cannot be decoded
    """
    query = db.query(BlogPost)
    if not post_filter.include_drafts:
        query = query.filter(BlogPost.status == "published")

    posts = query.order_by(BlogPost.date.desc(), BlogPost.id.desc()).all()
    posts = [p for p in posts if post_filter.matches(p)]

    if last_key:
        cursor = decode_last_key(last_key)
        start = (cursor["date"], cursor["id"])
        posts = [p for p in posts if (p.date, p.id) < start]

    page = posts[:limit]
    next_key = encode_last_key(page[-1]) if len(posts) > limit else None
    logger.debug(f"Listed {len(page)} posts (more: {next_key is not None})")
    return PostPage(items=page, last_key=next_key)


def get_post(db: Session, post_id: str) -> Optional[BlogPost]:
    return db.query(BlogPost).filter(BlogPost.id == post_id).first()


def create_post(db: Session, fields: dict) -> BlogPost:
    timestamp = iso_now()
    post = BlogPost(
        id=generate_id("blog"),
        title=fields["title"],
        excerpt=fields["excerpt"],
        content=fields["content"],
        tags=fields.get("tags") or [],
        reading_time=fields.get("reading_time") or "5 min",
        featured_image=fields.get("featured_image"),
        reference_links=fields.get("reference_links") or [],
        date=timestamp,
        updated_at=timestamp,
        status=fields.get("status") or "published",
        views=0,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


def update_post(db: Session, post_id: str, fields: dict) -> Optional[BlogPost]:
    """Apply the given column values and stamp ``updated_at``."""
    post = get_post(db, post_id)
    if post is None:
        return None
    for name, value in fields.items():
        setattr(post, name, value)
    post.updated_at = iso_now()
    db.commit()
    db.refresh(post)
    return post


def delete_post(db: Session, post_id: str) -> bool:
    post = get_post(db, post_id)
    if post is None:
        return False
    db.delete(post)
    db.commit()
    return True


def increment_views(db: Session, post_id: str) -> Optional[int]:
    """
    Atomically add one to a post's view counter.

    Returns:
        Optional[int]: The counter after the increment, or None if the post does not exist
    """
    updated = (
        db.query(BlogPost)
        .filter(BlogPost.id == post_id)
        .update({BlogPost.views: func.coalesce(BlogPost.views, 0) + 1}, synchronize_session=False)
    )
    db.commit()
    if updated == 0:
        return None
    return db.query(BlogPost.views).filter(BlogPost.id == post_id).scalar()


def _bump_reaction(db: Session, post_id: str, emoji: str) -> int:
    return (
        db.query(BlogReaction)
        .filter(BlogReaction.post_id == post_id, BlogReaction.emoji == emoji)
        .update({BlogReaction.count: BlogReaction.count + 1}, synchronize_session=False)
    )


def increment_reaction(db: Session, post_id: str, emoji: str) -> Optional[dict]:
    """
    Atomically add one to ``reactions[emoji]`` for a post.

    The first reaction with a given emoji inserts the counter row. The
    foreign key on ``post_id`` rejects that insert when the post is gone.

    Returns:
        Optional[dict]: All reaction counts for the post, or None if the post does not exist
    """
    if _bump_reaction(db, post_id, emoji) == 0:
        db.add(BlogReaction(post_id=post_id, emoji=emoji, count=1))
        try:
            db.commit()
        except IntegrityError:
            # Either another request created the counter first or the post was deleted
            db.rollback()
            if _bump_reaction(db, post_id, emoji) == 0:
                db.rollback()
                logger.info(f"Reaction rejected, blog post not found: {post_id}")
                return None
            db.commit()
    else:
        db.commit()

    rows = (
        db.query(BlogReaction.emoji, BlogReaction.count)
        .filter(BlogReaction.post_id == post_id)
        .order_by(BlogReaction.id)
        .all()
    )
    return {emoji_: count for emoji_, count in rows}


def append_comment(db: Session, post_id: str, name: str, content: str) -> Optional[list]:
    """
    Append a comment to a post.

    Returns:
        Optional[list]: All comments for the post in arrival order, or None if the post does not exist
    """
    db.add(BlogComment(
        id=generate_id("comment"),
        post_id=post_id,
        name=name,
        content=content,
        created_at=iso_now(),
    ))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Comment rejected, blog post not found: {post_id}")
        return None

    comments = (
        db.query(BlogComment)
        .filter(BlogComment.post_id == post_id)
        .order_by(BlogComment.seq)
        .all()
    )
    return [c.to_dict() for c in comments]


# ---------------------------------------------------------------------------
# Rate limit records
# ---------------------------------------------------------------------------


def get_rate_limit_record(db: Session, key: str) -> Optional[RateLimitRecord]:
    return db.query(RateLimitRecord).filter(RateLimitRecord.id == key).first()


def put_rate_limit_record(
    db: Session,
    key: str,
    attempts: List[int],
    blocked_until: Optional[int],
    last_updated: int,
) -> None:
    """Replace the whole record for ``key``."""
    db.merge(RateLimitRecord(
        id=key,
        attempts=list(attempts),
        blocked_until=blocked_until,
        last_updated=last_updated,
    ))
    db.commit()


# ---------------------------------------------------------------------------
# Contact messages
# ---------------------------------------------------------------------------


def save_contact_message(db: Session, name: str, email: str, subject: str, message: str) -> ContactMessage:
    item = ContactMessage(
        id=generate_id("msg"),
        name=name,
        email=email,
        subject=subject,
        message=message,
        timestamp=iso_now(),
        read=False,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item
