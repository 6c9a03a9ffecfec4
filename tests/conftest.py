"""Shared test fixtures for PostSync."""

from __future__ import annotations

import hashlib
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from postsync.config import Settings
from postsync.exceptions import GitHubApiError
from postsync.main import create_app
from postsync.models.base import Base
from postsync.services.github_client import BlobContent, CommitInfo, TreeEntry
from postsync.services.lock import ExportLock

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

logger = logging.getLogger(__name__)

TEST_API_TOKEN = "test-api-token-with-at-least-32-characters"
TEST_REPOSITORY = "octo/blog"
TEST_SITE_URL = "https://blog.example.com"


def git_blob_sha(content: bytes) -> str:
    """Hash content the way git hashes a blob object."""
    header = f"blob {len(content)}\0".encode()
    return hashlib.sha1(header + content).hexdigest()


class FakeObjectStore:
    """In-memory object store with git-style content addressing.

    Records every write call and can be told to fail a named operation.
    """

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, list[TreeEntry]] = {}
        self.commits: dict[str, CommitInfo] = {}
        self.head: str | None = None
        self.fail_on: set[str] = set()
        self.fail_blobs: set[str] = set()
        self.created_trees: list[list[dict[str, str]]] = []
        self.created_commits: list[tuple[str, str]] = []
        self.ref_updates: list[str] = []
        self.blob_reads: list[str] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise GitHubApiError(f"{operation} failed", status_code=500)

    def add_blob(self, content: str | bytes) -> str:
        raw = content.encode("utf-8") if isinstance(content, str) else content
        sha = git_blob_sha(raw)
        self.blobs[sha] = raw
        return sha

    def seed(self, files: dict[str, str | bytes], message: str = "Initial commit") -> str:
        """Commit files on top of the branch directly. Returns the commit hash."""
        entries = [{"path": path, "sha": self.add_blob(content)} for path, content in files.items()]
        tree_sha = self._store_tree(entries)
        commit_sha = self._store_commit(tree_sha, message)
        self.head = commit_sha
        return commit_sha

    def _store_tree(self, entries: list[dict[str, str]]) -> str:
        tree = [
            TreeEntry(path=e["path"], sha=e["sha"], size=len(self.blobs[e["sha"]]))
            for e in sorted(entries, key=lambda e: e["path"])
        ]
        digest = "\n".join(f"{t.path} {t.sha}" for t in tree)
        tree_sha = hashlib.sha1(f"tree {digest}".encode()).hexdigest()
        self.trees[tree_sha] = tree
        return tree_sha

    def _store_commit(self, tree_sha: str, message: str) -> str:
        parents = [self.head] if self.head else []
        commit_sha = hashlib.sha1(
            f"commit {tree_sha} {parents} {message} {len(self.commits)}".encode()
        ).hexdigest()
        self.commits[commit_sha] = CommitInfo(
            sha=commit_sha, message=message, tree_sha=tree_sha, parents=parents
        )
        return commit_sha

    def files(self) -> dict[str, str]:
        """Paths and decoded content at the branch tip."""
        if self.head is None:
            return {}
        tree = self.trees[self.commits[self.head].tree_sha]
        return {entry.path: self.blobs[entry.sha].decode("utf-8") for entry in tree}

    async def get_commit(self, sha: str) -> CommitInfo:
        self._maybe_fail("get_commit")
        if sha not in self.commits:
            raise GitHubApiError("GitHub API error 404: Not Found", status_code=404)
        return self.commits[sha]

    async def get_tree_recursive(self, tree_sha: str) -> list[TreeEntry]:
        self._maybe_fail("get_tree_recursive")
        return [
            TreeEntry(path=e.path, sha=e.sha, mode=e.mode, size=e.size, url=e.url)
            for e in self.trees[tree_sha]
        ]

    async def last_tree_recursive(self) -> list[TreeEntry]:
        self._maybe_fail("last_tree_recursive")
        if self.head is None:
            return []
        return await self.get_tree_recursive(self.commits[self.head].tree_sha)

    async def get_blob(self, sha: str) -> BlobContent:
        self._maybe_fail("get_blob")
        if sha in self.fail_blobs:
            raise GitHubApiError(f"blob {sha} failed", status_code=500)
        self.blob_reads.append(sha)
        return BlobContent(sha=sha, content=self.blobs[sha])

    async def create_tree(self, entries: list[dict[str, str]]) -> str:
        self._maybe_fail("create_tree")
        self.created_trees.append(entries)
        stored: list[dict[str, str]] = []
        for entry in entries:
            if "content" in entry:
                stored.append({"path": entry["path"], "sha": self.add_blob(entry["content"])})
            else:
                stored.append({"path": entry["path"], "sha": entry["sha"]})
        return self._store_tree(stored)

    async def create_commit(self, tree_sha: str, message: str) -> str:
        self._maybe_fail("create_commit")
        self.created_commits.append((tree_sha, message))
        return self._store_commit(tree_sha, message)

    async def set_ref(self, commit_sha: str) -> None:
        self._maybe_fail("set_ref")
        self.ref_updates.append(commit_sha)
        self.head = commit_sha


@asynccontextmanager
async def create_test_client(
    settings: Settings, store: FakeObjectStore | None = None
) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (DB schema) because
    ASGITransport does not trigger it. The GitHub client is replaced by ``store``.
    """
    from postsync.api.deps import get_object_store
    from postsync.database import create_engine as create_db_engine

    app = create_app(settings)
    settings.validate_runtime_security()

    engine, session_factory = create_db_engine(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.export_lock = ExportLock(settings)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    fake = store if store is not None else FakeObjectStore()

    async def _fake_object_store() -> AsyncGenerator[FakeObjectStore]:
        yield fake

    app.dependency_overrides[get_object_store] = _fake_object_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await engine.dispose()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with a temporary database and GitHub configured."""
    db_path = tmp_path / "test.db"
    return Settings(
        _env_file=None,
        api_token=TEST_API_TOKEN,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        site_url=TEST_SITE_URL,
        site_name="Test Blog",
        github_token="ghp_test",
        github_repository=TEST_REPOSITORY,
        github_branch="master",
    )


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def export_lock(test_settings: Settings) -> ExportLock:
    return ExportLock(test_settings)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_API_TOKEN}"}


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(
    db_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        yield session
