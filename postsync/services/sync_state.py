"""Sync state: export/import outcome flags persisted in the sync_options table."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import select

from postsync.models.sync import SyncOption
from postsync.services.datetime_service import format_iso, now_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_EXPORT_COMPLETE_KEY = "export_complete"
_FULLY_EXPORTED_KEY = "fully_exported"
_LAST_ERROR_KEY = "export_error"
_STATUS_KEY = "status"
_MESSAGE_KEY = "message"
_UPDATED_AT_KEY = "updated_at"


class SyncStatus(StrEnum):
    """Outcome of the most recent sync operation."""

    IDLE = "idle"
    NO_CHANGE = "no_change"
    COMMITTED = "committed"
    IMPORTED = "imported"
    ERROR = "error"


@dataclass(frozen=True)
class SyncState:
    """Process-wide sync flags, passed into and returned from each operation."""

    export_complete: bool = False
    fully_exported: bool = False
    last_error: str | None = None
    status: SyncStatus = SyncStatus.IDLE
    message: str = ""
    updated_at: str | None = None

    def no_change(self) -> SyncState:
        return replace(
            self,
            export_complete=True,
            status=SyncStatus.NO_CHANGE,
            message="There were no changes, so no additional commit was added.",
            updated_at=format_iso(now_utc()),
        )

    def committed(self) -> SyncState:
        return replace(
            self,
            export_complete=True,
            fully_exported=True,
            status=SyncStatus.COMMITTED,
            message="Export to GitHub completed successfully.",
            updated_at=format_iso(now_utc()),
        )

    def imported(self, message: str) -> SyncState:
        return replace(
            self, status=SyncStatus.IMPORTED, message=message, updated_at=format_iso(now_utc())
        )

    def error(self, message: str) -> SyncState:
        return replace(
            self,
            last_error=message,
            status=SyncStatus.ERROR,
            message=message,
            updated_at=format_iso(now_utc()),
        )


def _as_bool(value: str | None) -> bool:
    return value == "yes"


def _from_bool(value: bool) -> str:
    return "yes" if value else "no"


async def load_sync_state(session: AsyncSession) -> SyncState:
    """Read the persisted sync state, defaulting missing keys."""
    result = await session.execute(select(SyncOption))
    values = {row.key: row.value for row in result.scalars().all()}
    raw_status = values.get(_STATUS_KEY, SyncStatus.IDLE)
    try:
        status = SyncStatus(raw_status)
    except ValueError:
        logger.warning("Unknown persisted sync status %r, resetting to idle", raw_status)
        status = SyncStatus.IDLE
    return SyncState(
        export_complete=_as_bool(values.get(_EXPORT_COMPLETE_KEY)),
        fully_exported=_as_bool(values.get(_FULLY_EXPORTED_KEY)),
        last_error=values.get(_LAST_ERROR_KEY) or None,
        status=status,
        message=values.get(_MESSAGE_KEY, ""),
        updated_at=values.get(_UPDATED_AT_KEY),
    )


async def save_sync_state(session: AsyncSession, state: SyncState) -> None:
    """Persist every sync state field and commit."""
    values = {
        _EXPORT_COMPLETE_KEY: _from_bool(state.export_complete),
        _FULLY_EXPORTED_KEY: _from_bool(state.fully_exported),
        _LAST_ERROR_KEY: state.last_error or "",
        _STATUS_KEY: str(state.status),
        _MESSAGE_KEY: state.message,
        _UPDATED_AT_KEY: state.updated_at or "",
    }
    for key, value in values.items():
        option = await session.get(SyncOption, key)
        if option is None:
            session.add(SyncOption(key=key, value=value))
        else:
            option.value = value
    await session.commit()
