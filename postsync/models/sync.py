"""Sync option model."""

from __future__ import annotations

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from postsync.models.base import Base


class SyncOption(Base):
    """Key/value entry holding persisted sync flags (export status, last error)."""

    __tablename__ = "sync_options"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
