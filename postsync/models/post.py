"""Post model."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from postsync.models.base import Base


class PostType(StrEnum):
    POST = "post"
    PAGE = "page"


class PostStatus(StrEnum):
    PUBLISH = "publish"
    DRAFT = "draft"


class Post(Base):
    """A CMS post or page.

    ``sha`` is the hash of the blob that last carried this post in the GitHub
    tree. It is owned by the sync services and overwritten after each export.
    """

    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_type: Mapped[str] = mapped_column(String(20), nullable=False, default=PostType.POST)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PostStatus.PUBLISH)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False)
    author: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(200), nullable=True)
    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sha: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        Index("idx_posts_sha", "sha"),
        Index("idx_posts_slug", "slug"),
    )
