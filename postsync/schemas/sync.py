"""Sync status and export result schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SyncStateResponse(BaseModel):
    """Persisted sync flags."""

    export_complete: bool
    fully_exported: bool
    last_error: str | None = None
    status: str
    message: str = ""
    updated_at: str | None = None


class ExportResponse(BaseModel):
    """Result of an export operation."""

    outcome: str
    commit_sha: str | None = None
    tree_sha: str | None = None
    unmatched_post_ids: list[int] = Field(default_factory=list)
    state: SyncStateResponse
