"""Post adapter: a post's view as a blob in the GitHub tree."""

from __future__ import annotations

from typing import TYPE_CHECKING

from postsync.content.frontmatter import serialize_document
from postsync.models.post import Post, PostType
from postsync.services.datetime_service import format_export_datetime
from postsync.services.slug_service import normalize_category

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


def post_export_path(post: Post) -> str:
    """Derive the repository path a post is exported to.

    Posts live under ``_posts/[<category>/]YYYY-MM-DD-<slug>.md``, pages under
    ``_pages/<slug>.md``.
    """
    if post.post_type == PostType.PAGE:
        return f"_pages/{post.slug}.md"
    category = normalize_category(post.category)
    prefix = f"_posts/{category}/" if category else "_posts/"
    return f"{prefix}{post.created_at:%Y-%m-%d}-{post.slug}.md"


def post_relative_permalink(post: Post) -> str:
    """Site-relative URL of a post."""
    if post.post_type == PostType.PAGE:
        return f"/{post.slug}/"
    return f"/{post.created_at:%Y/%m/%d}/{post.slug}/"


class PostAdapter:
    """Exposes a post's export path, export content and stored blob hash."""

    def __init__(self, post: Post, site_url: str = "") -> None:
        self.post = post
        self.site_url = site_url.rstrip("/")

    @classmethod
    async def load(
        cls, session: AsyncSession, identifier: int | str, site_url: str = ""
    ) -> PostAdapter | None:
        """Build an adapter from a post id or an export path."""
        from postsync.services.post_service import find_post_by_export_path, get_post

        if isinstance(identifier, int):
            post = await get_post(session, identifier)
        else:
            post = await find_post_by_export_path(session, identifier)
        if post is None:
            return None
        return cls(post, site_url=site_url)

    @property
    def id(self) -> int:
        return self.post.id

    def export_path(self) -> str:
        return post_export_path(self.post)

    def permalink(self) -> str:
        return f"{self.site_url}{post_relative_permalink(self.post)}"

    def export_metadata(self) -> dict[str, object]:
        post = self.post
        return {
            "id": post.id,
            "title": post.title,
            "slug": post.slug,
            "layout": str(post.post_type),
            "date": format_export_datetime(post.created_at),
            "author": post.author,
            "category": post.category,
            "excerpt": post.excerpt,
            "permalink": self.permalink(),
        }

    def export_content(self) -> str:
        """Front matter block followed by the post body."""
        return serialize_document(self.export_metadata(), self.post.content)

    def content_hash(self) -> str | None:
        return self.post.sha

    def set_content_hash(self, sha: str | None) -> None:
        self.post.sha = sha
