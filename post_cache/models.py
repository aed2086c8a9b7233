"""Data models for blog posts held by the cache."""

import uuid
from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

_TICKS_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_post_id() -> str:
    """Generate a post ID from the current time in 100ns ticks."""
    delta = utcnow() - _TICKS_EPOCH
    ticks = (delta.days * 86400 + delta.seconds) * 10**7 + delta.microseconds * 10
    return str(ticks)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Comment(BaseModel):
    """A reader comment attached to a post.

    Serialized with PascalCase keys so blobs written by earlier versions of
    the blog still decode.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="ID")
    author: str = Field("", alias="Author")
    email: str = Field("", alias="Email")
    content: str = Field("", alias="Content")
    pub_date: datetime = Field(default_factory=utcnow, alias="PubDate")
    is_admin: bool = Field(False, alias="IsAdmin")

    @field_validator("pub_date")
    @classmethod
    def normalize_pub_date(cls, v: datetime) -> datetime:
        """Store naive publish dates as UTC and convert aware ones to UTC."""
        return _as_utc(v)


class Post(BaseModel):
    """A single blog post with publish metadata, categories and comments."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_post_id, description="Unique post identifier")
    title: str = ""
    slug: str = ""
    excerpt: str = ""
    content: str = ""
    pub_date: datetime = Field(default_factory=utcnow, description="Publish timestamp")
    last_modified: datetime = Field(default_factory=utcnow)
    is_published: bool = True
    categories: List[str] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)

    @field_validator("pub_date", "last_modified")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        """Normalize both timestamps to timezone-aware UTC."""
        return _as_utc(v)

    def is_visible(self, now: datetime, privileged: bool) -> bool:
        """Return whether the post may be shown to a caller.

        Privileged callers see every post. Everyone else only sees published
        posts whose publish date has passed.
        """
        if privileged:
            return True
        return self.is_published and self.pub_date <= now
