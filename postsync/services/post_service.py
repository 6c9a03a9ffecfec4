"""Post service: queries and CRUD operations on the CMS store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from postsync.models.post import Post, PostStatus, PostType
from postsync.services.datetime_service import now_utc, parse_datetime
from postsync.services.post_adapter import post_export_path, post_relative_permalink
from postsync.services.slug_service import generate_post_slug

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = frozenset(
    {"post_type", "status", "title", "slug", "author", "category", "excerpt", "content"}
)


async def get_post(session: AsyncSession, post_id: int) -> Post | None:
    return await session.get(Post, post_id)


async def find_post_by_sha(session: AsyncSession, sha: str) -> Post | None:
    """Return the post already tagged with a blob hash, if any."""
    stmt = select(Post).where(Post.sha == sha).limit(1)
    result = await session.execute(stmt)
    return result.scalars().first()


async def find_post_by_export_path(session: AsyncSession, path: str) -> Post | None:
    """Resolve a repository path to the post currently exported there.

    Export paths are derived, not stored, so this scans all posts.
    """
    result = await session.execute(select(Post).order_by(Post.id))
    for post in result.scalars().all():
        if post_export_path(post) == path:
            return post
    return None


async def find_post_by_permalink(session: AsyncSession, relative_url: str) -> Post | None:
    """Resolve a site-relative permalink to a post."""
    wanted = "/" + relative_url.strip("/") + "/"
    result = await session.execute(select(Post).order_by(Post.id))
    for post in result.scalars().all():
        if post_relative_permalink(post) == wanted:
            return post
    return None


async def list_exportable_posts(session: AsyncSession) -> list[Post]:
    """Published posts and pages, in id order."""
    stmt = (
        select(Post)
        .where(Post.status == PostStatus.PUBLISH)
        .where(Post.post_type.in_([PostType.POST, PostType.PAGE]))
        .order_by(Post.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_posts(session: AsyncSession) -> list[Post]:
    result = await session.execute(select(Post).order_by(Post.id))
    return list(result.scalars().all())


def apply_post_fields(post: Post, fields: dict[str, Any]) -> None:
    """Copy recognized fields onto a post, normalizing dates and slug."""
    for key, value in fields.items():
        if key in _EDITABLE_FIELDS and value is not None:
            setattr(post, key, value)
    if fields.get("created_at") is not None:
        post.created_at = parse_datetime(fields["created_at"])
    if not post.slug:
        post.slug = generate_post_slug(post.title)
    post.modified_at = now_utc()


async def create_post(session: AsyncSession, fields: dict[str, Any]) -> Post:
    """Insert a new post. ``title`` is required; other fields default."""
    now = now_utc()
    post = Post(
        post_type=PostType.POST,
        status=PostStatus.PUBLISH,
        title="",
        slug="",
        content="",
        created_at=now,
        modified_at=now,
    )
    apply_post_fields(post, fields)
    session.add(post)
    await session.flush()
    logger.info("Created post %d (%s)", post.id, post.slug)
    return post


async def update_post(session: AsyncSession, post: Post, fields: dict[str, Any]) -> Post:
    apply_post_fields(post, fields)
    await session.flush()
    return post


async def delete_post(session: AsyncSession, post: Post) -> None:
    logger.info("Deleting post %d (%s)", post.id, post.slug)
    await session.delete(post)
    await session.flush()
