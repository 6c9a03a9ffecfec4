"""SQLAlchemy ORM models for PostSync."""

from postsync.models.base import Base
from postsync.models.post import Post, PostStatus, PostType
from postsync.models.sync import SyncOption

__all__ = [
    "Base",
    "Post",
    "PostStatus",
    "PostType",
    "SyncOption",
]
