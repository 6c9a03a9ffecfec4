"""Tree reconciler: merges posts into the working tree of an export.

The working tree is the full desired state of the remote tree after the
export, seeded from the branch's current snapshot. Each post is matched to a
blob by content hash only, never by path, because a post's export path can
change between exports.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, cast

from postsync.exceptions import GitHubApiError
from postsync.services.github_client import BLOB_MODE, BLOB_TYPE

if TYPE_CHECKING:
    from postsync.services.github_client import ObjectStore, TreeEntry

logger = logging.getLogger(__name__)


class ExportablePost(Protocol):
    """What the reconciler needs from a post."""

    def export_path(self) -> str: ...

    def export_content(self) -> str: ...

    def content_hash(self) -> str | None: ...


@dataclass
class PendingBlob:
    """A blob the object store has yet to create; it has content but no hash."""

    path: str
    content: str
    mode: str = BLOB_MODE

    def to_tree_entry(self) -> dict[str, str]:
        return {"path": self.path, "mode": self.mode, "type": BLOB_TYPE, "content": self.content}


@dataclass
class ExistingBlob:
    """A blob already stored remotely, referenced by hash alone."""

    path: str
    sha: str
    mode: str = BLOB_MODE

    @classmethod
    def from_tree_entry(cls, entry: TreeEntry) -> ExistingBlob:
        """Keep path, hash and mode; drop transport-only fields (size, url)."""
        return cls(path=entry.path, sha=entry.sha, mode=entry.mode)

    def to_tree_entry(self) -> dict[str, str]:
        return {"path": self.path, "mode": self.mode, "type": BLOB_TYPE, "sha": self.sha}


Blob = PendingBlob | ExistingBlob


class TreeReconciler:
    """Builds the working tree for one export batch."""

    def __init__(self, store: ObjectStore, snapshot: list[TreeEntry]) -> None:
        self.store = store
        self.tree: list[Blob] = [ExistingBlob.from_tree_entry(entry) for entry in snapshot]
        self.dirty = False

    def _find_by_hash(self, sha: str | None) -> int | None:
        if sha is None:
            return None
        for index, blob in enumerate(self.tree):
            if isinstance(blob, ExistingBlob) and blob.sha == sha:
                return index
        return None

    async def reconcile(self, post: ExportablePost, *, removing: bool = False) -> None:
        """Merge one post into the working tree.

        A post whose stored hash matches a blob replaces that blob (or drops it
        when ``removing``). A post with no matching blob is appended as a new
        blob, even when removing.
        """
        index = self._find_by_hash(post.content_hash())

        if index is None:
            self.tree.append(self.build_blob(post))
            self.dirty = True
            return

        existing = self.tree.pop(index)
        if removing:
            logger.debug("Removing %s from the tree", existing.path)
            self.dirty = True
            return

        self.tree.append(await self.rebuild_blob(cast("ExistingBlob", existing), post))

    def build_blob(self, post: ExportablePost) -> PendingBlob:
        """Turn a post with no remote counterpart into a blob pending creation."""
        return PendingBlob(path=post.export_path(), content=post.export_content())

    async def rebuild_blob(self, existing: ExistingBlob, post: ExportablePost) -> Blob:
        """Compare an existing blob to the post and update it where they differ.

        An unchanged blob is returned as-is and leaves the tree clean. A changed
        path is updated in place, keeping the hash. Changed content discards the
        hash so the object store creates a new blob. A blob that cannot be fetched
        is treated as changed.
        """
        path = post.export_path()
        blob: Blob = ExistingBlob(path=existing.path, sha=existing.sha, mode=existing.mode)

        if blob.path != path:
            logger.debug("Moving %s to %s", blob.path, path)
            blob.path = path
            self.dirty = True

        content = post.export_content()
        try:
            remote_content: bytes | None = (await self.store.get_blob(existing.sha)).content
        except GitHubApiError as exc:
            logger.warning("Could not fetch blob %s, re-uploading %s: %s", existing.sha, path, exc)
            remote_content = None
        if remote_content != content.encode("utf-8"):
            blob = PendingBlob(path=path, content=content, mode=existing.mode)
            self.dirty = True

        return blob

    def tree_entries(self) -> list[dict[str, str]]:
        """The working tree as create-tree payload entries."""
        return [blob.to_tree_entry() for blob in self.tree]
