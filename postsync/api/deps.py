"""Shared API dependencies: DB session, GitHub client, export lock, auth."""

from __future__ import annotations

import secrets
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from postsync.config import Settings
from postsync.services.github_client import GitHubClient, ObjectStore
from postsync.services.lock import ExportLock

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_export_lock(request: Request) -> ExportLock:
    """Get the process-wide export lock from app state."""
    lock: ExportLock = request.app.state.export_lock
    return lock


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


async def get_object_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> AsyncGenerator[ObjectStore]:
    """Get a GitHub client for the configured repository, closed after the request."""
    async with GitHubClient.from_settings(settings) as client:
        yield client


async def require_admin(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> None:
    """Require the admin API token. Raises 401 if missing or wrong."""
    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode("utf-8"), settings.api_token.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
