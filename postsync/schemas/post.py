"""Post-related schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from postsync.schemas.sync import ExportResponse


class PostCreate(BaseModel):
    """Request to create a new post or page."""

    title: str = Field(min_length=1, max_length=500)
    content: str = Field(default="", max_length=500_000, description="Markdown body")
    slug: str | None = Field(default=None, max_length=200, pattern=r"^[a-z0-9][a-z0-9-]*$")
    post_type: Literal["post", "page"] = "post"
    status: Literal["publish", "draft"] = "publish"
    author: str | None = None
    category: str | None = None
    excerpt: str | None = None
    created_at: str | None = Field(default=None, description="Publication date, lax format")

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class PostUpdate(BaseModel):
    """Request to update a post; omitted fields are left unchanged."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    content: str | None = Field(default=None, max_length=500_000)
    slug: str | None = Field(default=None, max_length=200, pattern=r"^[a-z0-9][a-z0-9-]*$")
    post_type: Literal["post", "page"] | None = None
    status: Literal["publish", "draft"] | None = None
    author: str | None = None
    category: str | None = None
    excerpt: str | None = None
    created_at: str | None = None


class PostDetail(BaseModel):
    """A post with its export view."""

    id: int
    post_type: str
    status: str
    title: str
    slug: str
    author: str | None = None
    category: str | None = None
    excerpt: str | None = None
    content: str
    created_at: str
    modified_at: str
    sha: str | None = None
    export_path: str
    permalink: str


class PostSaveResponse(BaseModel):
    """A saved post together with the export it triggered, if any."""

    post: PostDetail | None = None
    export: ExportResponse | None = None
