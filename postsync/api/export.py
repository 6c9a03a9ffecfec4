"""Export API endpoints: push local posts to the GitHub repository."""

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
from postsync.config import Settings
from postsync.schemas.sync import ExportResponse, SyncStateResponse
from postsync.services.export_service import ExportOutcome, ExportResult, ExportService
from postsync.services.github_client import ObjectStore
from postsync.services.lock import ExportLock
from postsync.services.sync_state import SyncState, load_sync_state, save_sync_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/export", tags=["export"], dependencies=[Depends(require_admin)])


def state_response(state: SyncState) -> SyncStateResponse:
    return SyncStateResponse(
        export_complete=state.export_complete,
        fully_exported=state.fully_exported,
        last_error=state.last_error,
        status=str(state.status),
        message=state.message,
        updated_at=state.updated_at,
    )


def export_response(result: ExportResult) -> ExportResponse:
    return ExportResponse(
        outcome=str(result.outcome),
        commit_sha=result.commit_sha,
        tree_sha=result.tree_sha,
        unmatched_post_ids=result.unmatched_post_ids,
        state=state_response(result.state),
    )


async def persist_result(session: AsyncSession, result: ExportResult) -> ExportResponse:
    """Save the result's sync state unless the export never ran."""
    if result.outcome not in (ExportOutcome.LOCKED, ExportOutcome.NOT_FOUND):
        await save_sync_state(session, result.state)
    return export_response(result)


@router.get("/status", response_model=SyncStateResponse)
async def export_status(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SyncStateResponse:
    """Return the persisted sync state."""
    return state_response(await load_sync_state(session))


@router.post("", response_model=ExportResponse)
async def export_all_endpoint(
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    lock: Annotated[ExportLock, Depends(get_export_lock)],
) -> ExportResponse:
    """Export every published post and page as one commit."""
    service = ExportService(session, store, settings, lock)
    result = await service.export_all(await load_sync_state(session))
    return await persist_result(session, result)


@router.post("/posts/{post_id}", response_model=ExportResponse)
async def export_post_endpoint(
    post_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    lock: Annotated[ExportLock, Depends(get_export_lock)],
) -> ExportResponse:
    """Export a single post."""
    service = ExportService(session, store, settings, lock)
    result = await service.export_post(post_id, await load_sync_state(session))
    if result.outcome == ExportOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Post not found")
    return await persist_result(session, result)


@router.delete("/posts/{post_id}", response_model=ExportResponse)
async def delete_post_endpoint(
    post_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    lock: Annotated[ExportLock, Depends(get_export_lock)],
) -> ExportResponse:
    """Remove a single post's file from the repository (the local post is kept)."""
    service = ExportService(session, store, settings, lock)
    result = await service.delete_post(post_id, await load_sync_state(session))
    if result.outcome == ExportOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Post not found")
    return await persist_result(session, result)
