"""Export service: pushes local posts to GitHub as a single commit per operation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from postsync.exceptions import GitHubApiError
from postsync.services.lock import ExportLockedError
from postsync.services.post_adapter import PostAdapter
from postsync.services.post_service import list_exportable_posts
from postsync.services.reconciler import TreeReconciler

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from postsync.config import Settings
    from postsync.services.github_client import ObjectStore, TreeEntry
    from postsync.services.lock import ExportLock
    from postsync.services.sync_state import SyncState

logger = logging.getLogger(__name__)

# Appended to every commit message we author so the webhook can skip our own pushes.
SYNC_SENTINEL = "postsync"


class ExportOutcome(StrEnum):
    LOCKED = "locked"
    NOT_FOUND = "not_found"
    NO_CHANGE = "no_change"
    COMMITTED = "committed"
    ERROR = "error"


@dataclass
class ExportResult:
    """Outcome of one export operation together with the updated sync state."""

    outcome: ExportOutcome
    state: SyncState
    tree_sha: str | None = None
    commit_sha: str | None = None
    unmatched_post_ids: list[int] = field(default_factory=list)


def is_self_authored(message: str) -> bool:
    """True for commit messages written by an export."""
    return message.rstrip().endswith(SYNC_SENTINEL)


def write_back_hashes(posts: list[PostAdapter], snapshot: list[TreeEntry]) -> list[int]:
    """Store each post's blob hash from the new tree, matched by export path.

    Returns the ids of posts with no blob at their export path; their hash is
    left unchanged.
    """
    by_path = {entry.path: entry.sha for entry in snapshot}
    unmatched: list[int] = []
    for post in posts:
        sha = by_path.get(post.export_path())
        if sha is None:
            logger.warning("No sha matched for post ID %d", post.id)
            unmatched.append(post.id)
            continue
        post.set_content_hash(sha)
    return unmatched


class ExportFinalizer:
    """Turns a reconciled working tree into one tree, one commit and one ref update."""

    def __init__(self, store: ObjectStore, branch: str) -> None:
        self.store = store
        self.branch = branch

    async def finalize(
        self,
        reconciler: TreeReconciler,
        posts: list[PostAdapter],
        message: str,
        state: SyncState,
    ) -> ExportResult:
        """Create tree, write back hashes, commit and move the branch.

        Every step is gated on the previous one. A failure stops the export and
        is recorded in the returned state; earlier remote objects are left in
        place. Post hashes are restored when the commit or ref update fails, so
        they never point at blobs outside the branch.
        """
        if not reconciler.dirty:
            logger.warning("There were no changes, so no additional commit was added.")
            return ExportResult(outcome=ExportOutcome.NO_CHANGE, state=state.no_change())

        logger.info("Creating the tree.")
        try:
            tree_sha = await self.store.create_tree(reconciler.tree_entries())
            snapshot = await self.store.get_tree_recursive(tree_sha)
        except GitHubApiError as exc:
            return self._failed(state, exc)

        logger.info("Saving the shas.")
        previous = [(post, post.content_hash()) for post in posts]
        unmatched = write_back_hashes(posts, snapshot)

        try:
            logger.info("Creating the commit.")
            commit_sha = await self.store.create_commit(tree_sha, message)
            logger.info("Setting the %s branch to our new commit.", self.branch)
            await self.store.set_ref(commit_sha)
        except GitHubApiError as exc:
            for post, sha in previous:
                post.set_content_hash(sha)
            return self._failed(state, exc, tree_sha=tree_sha)

        logger.info("Export to GitHub completed successfully.")
        return ExportResult(
            outcome=ExportOutcome.COMMITTED,
            state=state.committed(),
            tree_sha=tree_sha,
            commit_sha=commit_sha,
            unmatched_post_ids=unmatched,
        )

    def _failed(
        self, state: SyncState, exc: GitHubApiError, tree_sha: str | None = None
    ) -> ExportResult:
        logger.error("Error exporting to GitHub. Error: %s", exc.message)
        return ExportResult(
            outcome=ExportOutcome.ERROR, state=state.error(exc.message), tree_sha=tree_sha
        )


class ExportService:
    """Entry points for outbound syncs: all posts, one post, or one removal."""

    def __init__(
        self,
        session: AsyncSession,
        store: ObjectStore,
        settings: Settings,
        lock: ExportLock,
    ) -> None:
        self.session = session
        self.store = store
        self.settings = settings
        self.lock = lock

    def _message(self, action: str) -> str:
        site = self.settings.site_url.rstrip("/")
        return f"{action} {self.settings.site_name} at {site} - {SYNC_SENTINEL}"

    async def export_all(self, state: SyncState) -> ExportResult:
        """Export every published post and page."""
        if self.lock.locked():
            logger.debug("Export locked, skipping full export")
            return ExportResult(outcome=ExportOutcome.LOCKED, state=state)

        posts = [
            PostAdapter(post, site_url=self.settings.site_url)
            for post in await list_exportable_posts(self.session)
        ]
        return await self._run(posts, self._message("Full export from"), state, removing=False)

    async def export_post(self, post_id: int, state: SyncState) -> ExportResult:
        """Export a single post by id."""
        if self.lock.locked():
            logger.debug("Export locked, skipping post %d", post_id)
            return ExportResult(outcome=ExportOutcome.LOCKED, state=state)

        post = await PostAdapter.load(self.session, post_id, site_url=self.settings.site_url)
        if post is None:
            return ExportResult(outcome=ExportOutcome.NOT_FOUND, state=state)
        message = self._message(f"Syncing {post.export_path()} from")
        return await self._run([post], message, state, removing=False)

    async def delete_post(self, post_id: int, state: SyncState) -> ExportResult:
        """Remove a single post's blob from the remote tree."""
        if self.lock.locked():
            logger.debug("Export locked, skipping removal of post %d", post_id)
            return ExportResult(outcome=ExportOutcome.LOCKED, state=state)

        post = await PostAdapter.load(self.session, post_id, site_url=self.settings.site_url)
        if post is None:
            return ExportResult(outcome=ExportOutcome.NOT_FOUND, state=state)
        message = self._message(f"Deleting {post.export_path()} via")
        return await self._run([post], message, state, removing=True)

    async def _run(
        self,
        posts: list[PostAdapter],
        message: str,
        state: SyncState,
        *,
        removing: bool,
    ) -> ExportResult:
        try:
            async with self.lock.hold():
                result = await self._export(posts, message, state, removing=removing)
        except ExportLockedError:
            return ExportResult(outcome=ExportOutcome.LOCKED, state=state)
        await self.session.commit()
        return result

    async def _export(
        self,
        posts: list[PostAdapter],
        message: str,
        state: SyncState,
        *,
        removing: bool,
    ) -> ExportResult:
        try:
            snapshot = await self.store.last_tree_recursive()
        except GitHubApiError as exc:
            logger.error("Error reading the GitHub tree. Error: %s", exc.message)
            return ExportResult(outcome=ExportOutcome.ERROR, state=state.error(exc.message))

        reconciler = TreeReconciler(self.store, snapshot)
        logger.info("Building the tree.")
        for post in posts:
            await reconciler.reconcile(post, removing=removing)

        finalizer = ExportFinalizer(self.store, self.settings.github_branch)
        written = [] if removing else posts
        return await finalizer.finalize(reconciler, written, message, state)
