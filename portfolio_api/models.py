"""Database models for PortfolioAPI."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    BigInteger,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class AuthCode(Base):
    """One-time admin login code, keyed by the code itself (no hyphens)."""

    __tablename__ = "auth_codes"

    code = Column(String(20), primary_key=True)
    expires_at = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    # Legacy flag; codes are deleted on first use
    used = Column(Boolean, default=False, nullable=False)


class BlogPost(Base):
    """Blog post model."""

    __tablename__ = "blog_posts"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    excerpt = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    reading_time = Column(String, default="5 min", nullable=False)
    featured_image = Column(String, nullable=True)
    reference_links = Column(JSON, default=list, nullable=False)
    date = Column(String, nullable=False, index=True)
    updated_at = Column(String, nullable=False)
    status = Column(String, default="published", nullable=False, index=True)
    views = Column(Integer, default=0, nullable=False)

    comments = relationship(
        "BlogComment",
        order_by="BlogComment.seq",
        cascade="all, delete-orphan",
    )
    reactions = relationship(
        "BlogReaction",
        order_by="BlogReaction.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        """Serialize to the camelCase shape returned by the API."""
        return {
            "id": self.id,
            "title": self.title,
            "excerpt": self.excerpt,
            "content": self.content,
            "tags": list(self.tags or []),
            "readingTime": self.reading_time,
            "featuredImage": self.featured_image,
            "references": list(self.reference_links or []),
            "date": self.date,
            "updatedAt": self.updated_at,
            "status": self.status,
            "views": self.views or 0,
            "reactions": {r.emoji: r.count for r in self.reactions},
            "comments": [c.to_dict() for c in self.comments],
        }


class BlogComment(Base):
    """Comment on a blog post. Rows are only ever inserted."""

    __tablename__ = "blog_comments"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False)
    post_id = Column(String, ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(80), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(String, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "content": self.content,
            "createdAt": self.created_at,
        }


class BlogReaction(Base):
    """Per-emoji reaction counter for a blog post."""

    __tablename__ = "blog_reactions"
    __table_args__ = (UniqueConstraint("post_id", "emoji", name="uq_blog_reaction_emoji"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(String, ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    emoji = Column(String, nullable=False)
    count = Column(Integer, default=0, nullable=False)


class RateLimitRecord(Base):
    """Durable attempt history for the blocking rate limiter."""

    __tablename__ = "rate_limits"

    id = Column(String, primary_key=True)
    attempts = Column(JSON, default=list, nullable=False)
    blocked_until = Column(BigInteger, nullable=True)
    last_updated = Column(BigInteger, nullable=False)


class ContactMessage(Base):
    """Message submitted through the public contact form."""

    __tablename__ = "contact_messages"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(String, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
