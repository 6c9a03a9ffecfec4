"""Export lock: allows only one outbound sync at a time."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from postsync.config import Settings

logger = logging.getLogger(__name__)


class ExportLockedError(Exception):
    """Raised by ``ExportLock.hold`` when an export may not start."""


class ExportLock:
    """Process-wide advisory lock for outbound syncs.

    ``locked()`` is also true when GitHub credentials or the repository are
    missing, so an unconfigured process never calls the API.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._lock = asyncio.Lock()

    def locked(self) -> bool:
        return not self._settings.github_configured or self._lock.locked()

    @asynccontextmanager
    async def hold(self) -> AsyncGenerator[None]:
        """Hold the lock for the duration of an export; released on every exit path."""
        if self.locked():
            raise ExportLockedError("Export is locked or GitHub is not configured")
        async with self._lock:
            yield
