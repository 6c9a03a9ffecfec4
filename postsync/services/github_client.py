"""GitHub Git Data API client: commits, recursive trees, blobs and branch refs."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from postsync.exceptions import GitHubApiError

if TYPE_CHECKING:
    from postsync.config import Settings

logger = logging.getLogger(__name__)

BLOB_MODE = "100644"
BLOB_TYPE = "blob"


@dataclass
class TreeEntry:
    """One blob of a recursive tree snapshot as returned by the API.

    ``size`` and ``url`` are transport-only and never sent back when a tree
    is created.
    """

    path: str
    sha: str
    mode: str = BLOB_MODE
    type: str = BLOB_TYPE
    size: int | None = None
    url: str | None = None


@dataclass
class CommitInfo:
    """A commit as returned by the API."""

    sha: str
    message: str
    tree_sha: str
    parents: list[str]


@dataclass
class BlobContent:
    """A blob's decoded content."""

    sha: str
    content: bytes


@runtime_checkable
class ObjectStore(Protocol):
    """Operations the sync engine needs from the remote tree store."""

    async def get_commit(self, sha: str) -> CommitInfo:
        """Fetch a commit by hash."""
        ...

    async def get_tree_recursive(self, tree_sha: str) -> list[TreeEntry]:
        """Fetch every blob of a tree, recursively."""
        ...

    async def last_tree_recursive(self) -> list[TreeEntry]:
        """Fetch the recursive tree at the tip of the tracked branch."""
        ...

    async def get_blob(self, sha: str) -> BlobContent:
        """Fetch a blob's decoded content."""
        ...

    async def create_tree(self, entries: list[dict[str, str]]) -> str:
        """Create a tree from full blob entries. Returns the new tree hash."""
        ...

    async def create_commit(self, tree_sha: str, message: str) -> str:
        """Commit a tree on top of the branch tip. Returns the new commit hash."""
        ...

    async def set_ref(self, commit_sha: str) -> None:
        """Move the tracked branch to a commit."""
        ...


class GitHubClient:
    """Async client for the GitHub Git Data API of one repository and branch."""

    def __init__(
        self,
        *,
        token: str,
        repository: str,
        branch: str = "master",
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.repository = repository
        self.branch = branch
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> GitHubClient:
        """Build a client for the configured repository."""
        return cls(
            token=settings.github_token,
            repository=settings.github_repository,
            branch=settings.github_branch,
            api_url=settings.github_api_url,
            timeout=settings.github_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _repo_path(self, suffix: str) -> str:
        return f"/repos/{self.repository}/git/{suffix}"

    async def _request(
        self,
        method: str,
        suffix: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Issue a request and return the decoded JSON body, raising GitHubApiError on failure."""
        try:
            resp = await self._client.request(
                method, self._repo_path(suffix), json=json, params=params
            )
        except httpx.HTTPError as exc:
            msg = f"GitHub request {method} {suffix} failed: {exc}"
            raise GitHubApiError(msg) from exc

        if resp.status_code >= 400:
            raise GitHubApiError(_error_message(resp), status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            msg = f"GitHub returned invalid JSON for {method} {suffix}"
            raise GitHubApiError(msg, status_code=resp.status_code) from exc
        if not isinstance(data, dict):
            msg = f"GitHub returned unexpected payload for {method} {suffix}"
            raise GitHubApiError(msg, status_code=resp.status_code)
        return data

    async def get_commit(self, sha: str) -> CommitInfo:
        data = await self._request("GET", f"commits/{sha}")
        try:
            return CommitInfo(
                sha=str(data["sha"]),
                message=str(data.get("message", "")),
                tree_sha=str(data["tree"]["sha"]),
                parents=[str(p["sha"]) for p in data.get("parents", [])],
            )
        except (KeyError, TypeError) as exc:
            msg = f"Malformed commit response for {sha}"
            raise GitHubApiError(msg) from exc

    async def get_tree_recursive(self, tree_sha: str) -> list[TreeEntry]:
        data = await self._request("GET", f"trees/{tree_sha}", params={"recursive": "1"})
        if data.get("truncated"):
            logger.warning("Tree %s was truncated by GitHub; some blobs are missing", tree_sha)
        entries: list[TreeEntry] = []
        for item in data.get("tree", []):
            # Directories and submodules are implied by blob paths.
            if item.get("type") != BLOB_TYPE:
                continue
            entries.append(
                TreeEntry(
                    path=str(item["path"]),
                    sha=str(item["sha"]),
                    mode=str(item.get("mode", BLOB_MODE)),
                    type=BLOB_TYPE,
                    size=item.get("size"),
                    url=item.get("url"),
                )
            )
        return entries

    async def head_commit_sha(self) -> str | None:
        """Return the tracked branch's tip, or None if the branch does not exist yet."""
        try:
            data = await self._request("GET", f"ref/heads/{self.branch}")
        except GitHubApiError as exc:
            # 404: no such branch; 409: the repository is empty.
            if exc.status_code in (404, 409):
                return None
            raise
        return str(data["object"]["sha"])

    async def last_tree_recursive(self) -> list[TreeEntry]:
        head = await self.head_commit_sha()
        if head is None:
            logger.info("Branch %s has no commits yet; starting from an empty tree", self.branch)
            return []
        commit = await self.get_commit(head)
        return await self.get_tree_recursive(commit.tree_sha)

    async def get_blob(self, sha: str) -> BlobContent:
        data = await self._request("GET", f"blobs/{sha}")
        raw = data.get("content", "")
        if data.get("encoding", "base64") != "base64":
            return BlobContent(sha=sha, content=str(raw).encode("utf-8"))
        try:
            content = base64.b64decode(str(raw))
        except (binascii.Error, ValueError) as exc:
            msg = f"Blob {sha} has invalid base64 content"
            raise GitHubApiError(msg) from exc
        return BlobContent(sha=sha, content=content)

    async def create_tree(self, entries: list[dict[str, str]]) -> str:
        data = await self._request("POST", "trees", json={"tree": entries})
        return str(data["sha"])

    async def create_commit(self, tree_sha: str, message: str) -> str:
        head = await self.head_commit_sha()
        parents = [head] if head is not None else []
        data = await self._request(
            "POST",
            "commits",
            json={"message": message, "tree": tree_sha, "parents": parents},
        )
        return str(data["sha"])

    async def set_ref(self, commit_sha: str) -> None:
        head = await self.head_commit_sha()
        if head is None:
            await self._request(
                "POST",
                "refs",
                json={"ref": f"refs/heads/{self.branch}", "sha": commit_sha},
            )
            return
        await self._request("PATCH", f"refs/heads/{self.branch}", json={"sha": commit_sha})


def _error_message(resp: httpx.Response) -> str:
    """Extract GitHub's error message from a failed response."""
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return f"GitHub API error {resp.status_code}: {payload['message']}"
    return f"GitHub API error {resp.status_code}"
