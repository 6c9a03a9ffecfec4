"""Import service: applies a pushed GitHub commit to local posts."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import yaml

from postsync.content.frontmatter import has_front_matter, parse_metadata, split_front_matter
from postsync.exceptions import GitHubApiError
from postsync.models.post import Post, PostStatus, PostType
from postsync.services.datetime_service import parse_datetime
from postsync.services.export_service import is_self_authored
from postsync.services.post_adapter import PostAdapter, post_relative_permalink
from postsync.services.post_service import (
    create_post,
    delete_post,
    find_post_by_export_path,
    find_post_by_permalink,
    find_post_by_sha,
    get_post,
    update_post,
)
from postsync.services.render_service import RenderError, render_markdown

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from postsync.config import Settings
    from postsync.schemas.webhook import PushPayload, WebhookCommit
    from postsync.services.github_client import ObjectStore
    from postsync.services.sync_state import SyncState

logger = logging.getLogger(__name__)

README_PREFIX = "readme"


class ImportOutcome(StrEnum):
    REJECTED = "rejected"
    SKIPPED = "skipped"
    IMPORTED = "imported"
    ERROR = "error"


@dataclass
class ImportResult:
    """Outcome of processing one push, together with the updated sync state."""

    outcome: ImportOutcome
    state: SyncState
    message: str = ""
    imported: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


def is_readme(path: str) -> bool:
    return path[: len(README_PREFIX)].lower() == README_PREFIX


def collect_removed_paths(commits: Iterable[WebhookCommit]) -> list[str]:
    """Removed paths across all commits, deduplicated in first-seen order.

    Commits we authored ourselves are ignored.
    """
    seen: dict[str, None] = {}
    for commit in commits:
        if is_self_authored(commit.message):
            continue
        for path in commit.removed:
            seen.setdefault(path, None)
    return list(seen)


def title_from_path(path: str) -> str:
    """Derive a title from a file name like ``2024-01-02-my-post.md``."""
    name = path.rsplit("/", maxsplit=1)[-1]
    name = re.sub(r"^\d{4}-\d{2}-\d{2}-?", "", name)
    name = name.removesuffix(".md")
    return name.replace("-", " ").replace("_", " ").title() or "Untitled"


class ImportService:
    """Walks a pushed commit's tree and upserts posts whose blobs changed."""

    def __init__(self, session: AsyncSession, store: ObjectStore, settings: Settings) -> None:
        self.session = session
        self.store = store
        self.settings = settings
        self.last_error: str | None = None

    def validate(self, payload: PushPayload) -> str | None:
        """Return a rejection reason when the push is not for the tracked repository and branch."""
        if payload.repository.full_name.lower() != self.settings.github_repository.lower():
            return f"{payload.repository.full_name} is an invalid repository."
        if payload.branch != self.settings.github_branch:
            return f"Not on the {self.settings.github_branch} branch."
        return None

    async def handle_push(self, payload: PushPayload, state: SyncState) -> ImportResult:
        """Import the head commit, then delete posts whose files were removed."""
        reason = self.validate(payload)
        if reason is not None:
            logger.warning(reason)
            return ImportResult(outcome=ImportOutcome.REJECTED, state=state, message=reason)

        imported: list[str] = []
        deleted: list[str] = []
        skipped = False
        try:
            if payload.head_commit is not None:
                walked = await self.import_commit(
                    payload.head_commit.id, payload.head_commit.message
                )
                if walked is None:
                    skipped = True
                else:
                    imported = walked
            deleted = await self.delete_removed(collect_removed_paths(payload.commits))
        except GitHubApiError as exc:
            logger.error("Error importing from GitHub. Error: %s", exc.message)
            await self.session.commit()
            return ImportResult(
                outcome=ImportOutcome.ERROR,
                state=state.error(exc.message),
                message=exc.message,
                imported=imported,
            )

        await self.session.commit()
        if self.last_error is not None:
            logger.error("Error importing from GitHub. Error: %s", self.last_error)
            return ImportResult(
                outcome=ImportOutcome.ERROR,
                state=state.error(self.last_error),
                message=self.last_error,
                imported=imported,
                deleted=deleted,
            )
        if skipped and not deleted:
            return ImportResult(
                outcome=ImportOutcome.SKIPPED,
                state=state,
                message="Already synced this commit.",
            )
        message = f"Imported {len(imported)} post(s), deleted {len(deleted)} post(s)."
        logger.info(message)
        return ImportResult(
            outcome=ImportOutcome.IMPORTED,
            state=state.imported(message),
            message=message,
            imported=imported,
            deleted=deleted,
        )

    async def import_commit(self, commit_id: str, message: str) -> list[str] | None:
        """Apply every changed blob of a commit's tree to local posts.

        Returns the imported paths, or None when the commit was authored by an
        export and skipped. A blob that cannot be fetched is skipped and its
        error kept in ``last_error``; commit and tree fetch failures raise
        GitHubApiError.
        """
        if is_self_authored(message):
            logger.info("Already synced this commit.")
            return None

        commit = await self.store.get_commit(commit_id)
        tree = await self.store.get_tree_recursive(commit.tree_sha)

        imported: list[str] = []
        for entry in tree:
            if is_readme(entry.path):
                continue
            if await find_post_by_sha(self.session, entry.sha) is not None:
                continue
            try:
                blob = await self.store.get_blob(entry.sha)
            except GitHubApiError as exc:
                logger.warning("Could not fetch %s: %s", entry.path, exc.message)
                self.last_error = exc.message
                continue
            if await self.import_blob(entry.path, entry.sha, blob.content):
                imported.append(entry.path)
        return imported

    async def import_blob(self, path: str, sha: str, raw: bytes) -> bool:
        """Upsert a post from a blob's content. Returns False when the blob is skipped."""
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping %s: not UTF-8 text", path)
            return False
        if not has_front_matter(text):
            return False

        document = split_front_matter(text)
        metadata: dict[str, Any] = {}
        if document.raw_metadata is not None:
            try:
                metadata = parse_metadata(document.raw_metadata)
            except yaml.YAMLError as exc:
                logger.warning("Skipping %s: invalid front matter: %s", path, exc)
                return False

        body = document.body.strip("\n")
        try:
            body = await render_markdown(body, enabled=self.settings.render_markdown)
        except RenderError as exc:
            logger.warning("Rendering %s failed, importing raw markdown: %s", path, exc)

        post = await self._find_target(path, metadata)
        fields = self._fields_from_metadata(metadata, body, path)
        if post is None:
            post = await create_post(self.session, fields)
        else:
            await update_post(self.session, post, fields)
        post.sha = sha
        logger.info("Imported %s into post %d", path, post.id)
        return True

    async def delete_removed(self, paths: list[str]) -> list[str]:
        """Delete the post exported at each removed path."""
        deleted: list[str] = []
        for path in paths:
            adapter = await PostAdapter.load(self.session, path)
            if adapter is None:
                logger.debug("No post found for removed path %s", path)
                continue
            await delete_post(self.session, adapter.post)
            deleted.append(path)
        return deleted

    async def _find_target(self, path: str, metadata: dict[str, Any]) -> Post | None:
        """Find the post a document updates: by id, then permalink, then export path."""
        raw_id = metadata.get("id")
        if isinstance(raw_id, int) and not isinstance(raw_id, bool):
            post = await get_post(self.session, raw_id)
            if post is not None:
                return post

        permalink = metadata.get("permalink")
        if isinstance(permalink, str):
            post = await self._resolve_permalink(permalink, metadata)
            if post is not None:
                return post

        return await find_post_by_export_path(self.session, path)

    async def _resolve_permalink(self, permalink: str, metadata: dict[str, Any]) -> Post | None:
        """Rewrite a permalink pointing at an existing post to a site-relative path."""
        site_url = self.settings.site_url.rstrip("/")
        relative = permalink.removeprefix(site_url) if site_url else permalink
        if not relative.startswith("/"):
            return None
        post = await find_post_by_permalink(self.session, relative)
        if post is not None:
            metadata["permalink"] = post_relative_permalink(post)
        return post

    def _fields_from_metadata(
        self, metadata: dict[str, Any], body: str, path: str
    ) -> dict[str, Any]:
        fields: dict[str, Any] = {"content": body}

        title = metadata.get("title")
        fields["title"] = str(title).strip() if title else title_from_path(path)

        for key in ("slug", "author", "category", "excerpt"):
            value = metadata.get(key)
            if value is not None:
                fields[key] = str(value)

        layout = metadata.get("layout")
        if layout in (PostType.POST, PostType.PAGE):
            fields["post_type"] = str(layout)

        published = metadata.get("published")
        if isinstance(published, bool):
            fields["status"] = PostStatus.PUBLISH if published else PostStatus.DRAFT

        raw_date = metadata.get("date")
        if isinstance(raw_date, (str, date)):
            try:
                fields["created_at"] = parse_datetime(raw_date)
            except ValueError:
                logger.warning("Ignoring unparseable date %r in %s", raw_date, path)
        return fields
