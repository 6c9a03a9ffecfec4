"""Post CRUD endpoints. Saving or deleting a published post syncs it to GitHub."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from postsync.api.deps import (
    get_export_lock,
    get_object_store,
    get_session,
    get_settings,
    require_admin,
)
from postsync.api.export import persist_result
from postsync.config import Settings
from postsync.models.post import Post, PostStatus
from postsync.schemas.post import PostCreate, PostDetail, PostSaveResponse, PostUpdate
from postsync.services.datetime_service import format_iso
from postsync.services.export_service import ExportService
from postsync.services.github_client import ObjectStore
from postsync.services.lock import ExportLock
from postsync.services.post_adapter import PostAdapter
from postsync.services.post_service import (
    create_post,
    delete_post,
    get_post,
    list_posts,
    update_post,
)
from postsync.services.sync_state import load_sync_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["posts"], dependencies=[Depends(require_admin)])


def post_detail(post: Post, settings: Settings) -> PostDetail:
    adapter = PostAdapter(post, site_url=settings.site_url)
    return PostDetail(
        id=post.id,
        post_type=post.post_type,
        status=post.status,
        title=post.title,
        slug=post.slug,
        author=post.author,
        category=post.category,
        excerpt=post.excerpt,
        content=post.content,
        created_at=format_iso(post.created_at),
        modified_at=format_iso(post.modified_at),
        sha=post.sha,
        export_path=adapter.export_path(),
        permalink=adapter.permalink(),
    )


async def _get_post_or_404(session: AsyncSession, post_id: int) -> Post:
    post = await get_post(session, post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.get("", response_model=list[PostDetail])
async def list_posts_endpoint(
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> list[PostDetail]:
    return [post_detail(post, settings) for post in await list_posts(session)]


@router.get("/{post_id}", response_model=PostDetail)
async def get_post_endpoint(
    post_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PostDetail:
    return post_detail(await _get_post_or_404(session, post_id), settings)


@router.post("", response_model=PostSaveResponse, status_code=201)
async def create_post_endpoint(
    body: PostCreate,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    lock: Annotated[ExportLock, Depends(get_export_lock)],
) -> PostSaveResponse:
    """Create a post and, when published, export it."""
    post = await create_post(session, body.model_dump())
    await session.commit()
    return await _export_saved(post, session, store, settings, lock)


@router.put("/{post_id}", response_model=PostSaveResponse)
async def update_post_endpoint(
    post_id: int,
    body: PostUpdate,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    lock: Annotated[ExportLock, Depends(get_export_lock)],
) -> PostSaveResponse:
    """Update a post and, when published, export it."""
    post = await _get_post_or_404(session, post_id)
    await update_post(session, post, body.model_dump(exclude_unset=True))
    await session.commit()
    return await _export_saved(post, session, store, settings, lock)


@router.delete("/{post_id}", response_model=PostSaveResponse)
async def delete_post_endpoint(
    post_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    lock: Annotated[ExportLock, Depends(get_export_lock)],
) -> PostSaveResponse:
    """Remove a post's file from the repository, then delete the post."""
    post = await _get_post_or_404(session, post_id)
    export = None
    if post.status == PostStatus.PUBLISH:
        service = ExportService(session, store, settings, lock)
        result = await service.delete_post(post_id, await load_sync_state(session))
        export = await persist_result(session, result)
    await delete_post(session, post)
    await session.commit()
    return PostSaveResponse(post=None, export=export)


async def _export_saved(
    post: Post,
    session: AsyncSession,
    store: ObjectStore,
    settings: Settings,
    lock: ExportLock,
) -> PostSaveResponse:
    export = None
    if post.status == PostStatus.PUBLISH:
        service = ExportService(session, store, settings, lock)
        result = await service.export_post(post.id, await load_sync_state(session))
        export = await persist_result(session, result)
    return PostSaveResponse(post=post_detail(post, settings), export=export)
