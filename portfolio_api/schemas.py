"""Pydantic schemas for request validation."""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# Admin auth schemas
class VerifyCodeRequest(BaseModel):
    """Schema for the verify-code request. Format checks happen after normalization."""

    code: Optional[str] = None


# Blog post schemas
class BlogPostCreate(BaseModel):
    """Schema for blog post creation request."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(max_length=200)
    excerpt: str
    content: str = Field(max_length=100000)
    tags: List[str] = Field(default_factory=list)
    reading_time: Optional[str] = Field(None, alias="readingTime")
    featured_image: Optional[str] = Field(None, alias="featuredImage")
    reference_links: List[str] = Field(default_factory=list, alias="references")
    status: Literal["draft", "published"] = "published"

    @field_validator('title', 'excerpt', 'content')
    @classmethod
    def not_empty(cls, v: str) -> str:
        """Validate that required text fields are not blank."""
        if not v or not v.strip():
            raise ValueError('Field cannot be empty')
        return v


class BlogPostUpdate(BaseModel):
    """Schema for blog post update request. Only provided fields are changed."""

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, max_length=200)
    excerpt: Optional[str] = None
    content: Optional[str] = Field(None, max_length=100000)
    tags: Optional[List[str]] = None
    reading_time: Optional[str] = Field(None, alias="readingTime")
    featured_image: Optional[str] = Field(None, alias="featuredImage")
    reference_links: Optional[List[str]] = Field(None, alias="references")
    status: Optional[Literal["draft", "published"]] = None


class EngagementRequest(BaseModel):
    """Body for ``?action=react`` and ``?action=comment``; ``website`` is the honeypot."""

    emoji: Optional[str] = None
    name: Optional[str] = None
    content: Optional[str] = None
    website: Optional[str] = None


# Contact schemas
class ContactCreate(BaseModel):
    """Schema for contact form submission."""

    name: str
    email: EmailStr
    subject: str
    message: str

    @field_validator('name', 'subject', 'message')
    @classmethod
    def not_empty(cls, v: str) -> str:
        """Validate that fields are not blank."""
        if not v or not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()
