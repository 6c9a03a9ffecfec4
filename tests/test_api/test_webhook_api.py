"""Integration tests for the GitHub push webhook."""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import TYPE_CHECKING, Any

from postsync.api.webhook import verify_signature
from tests.conftest import TEST_REPOSITORY, FakeObjectStore, create_test_client

if TYPE_CHECKING:
    from postsync.config import Settings

DOC = "---\ntitle: From GitHub\ndate: 2024-03-04\n---\n\nHello\n"


def _push(head_id: str, message: str = "Edit on GitHub", **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ref": "refs/heads/master",
        "before": "0" * 40,
        "after": head_id,
        "repository": {"full_name": TEST_REPOSITORY, "private": False},
        "pusher": {"name": "octocat"},
        "head_commit": {"id": head_id, "message": message, "added": [], "removed": []},
        "commits": [{"id": head_id, "message": message, "removed": []}],
    }
    payload.update(extra)
    return payload


def _sign(secret: str, body: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestSignature:
    def test_valid(self) -> None:
        assert verify_signature("s3cret", b"{}", _sign("s3cret", b"{}"))

    def test_invalid(self) -> None:
        assert not verify_signature("s3cret", b"{}", _sign("other", b"{}"))
        assert not verify_signature("s3cret", b"{}", None)
        assert not verify_signature("s3cret", b"{}", "sha1=abc")


class TestWebhook:
    async def test_ping(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.post(
                "/api/webhook", content=b"{}", headers={"X-GitHub-Event": "ping"}
            )
        assert resp.status_code == 200
        assert resp.json()["status"] == "pong"

    async def test_other_events_ignored(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.post(
                "/api/webhook", content=b"{}", headers={"X-GitHub-Event": "issues"}
            )
        assert resp.json()["status"] == "ignored"

    async def test_push_imports_post(
        self, test_settings: Settings, fake_store: FakeObjectStore, auth_headers: dict[str, str]
    ) -> None:
        head = fake_store.seed({"_posts/2024-03-04-from-github.md": DOC})

        async with create_test_client(test_settings, fake_store) as client:
            resp = await client.post(
                "/api/webhook", json=_push(head), headers={"X-GitHub-Event": "push"}
            )
            posts = await client.get("/api/posts", headers=auth_headers)
            status = await client.get("/api/export/status", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json()["status"] == "imported"
        assert resp.json()["imported"] == ["_posts/2024-03-04-from-github.md"]
        assert [p["title"] for p in posts.json()] == ["From GitHub"]
        assert status.json()["status"] == "imported"

    async def test_own_commit_skipped(
        self, test_settings: Settings, fake_store: FakeObjectStore
    ) -> None:
        message = "Full export from Test Blog at https://blog.example.com - postsync"
        head = fake_store.seed({"_posts/x.md": DOC}, message=message)

        async with create_test_client(test_settings, fake_store) as client:
            resp = await client.post("/api/webhook", json=_push(head, message))

        assert resp.json()["status"] == "skipped"
        assert fake_store.blob_reads == []

    async def test_wrong_branch_rejected(
        self, test_settings: Settings, fake_store: FakeObjectStore
    ) -> None:
        head = fake_store.seed({"_posts/x.md": DOC})

        async with create_test_client(test_settings, fake_store) as client:
            resp = await client.post("/api/webhook", json=_push(head, ref="refs/heads/dev"))

        assert resp.status_code == 200
        assert resp.json()["status"] == "rejected"
        assert resp.json()["message"] == "Not on the master branch."

    async def test_invalid_payload(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.post("/api/webhook", content=b'{"ref": 1}')
        assert resp.status_code == 422

    async def test_fetch_failure_returns_502(
        self, test_settings: Settings, fake_store: FakeObjectStore
    ) -> None:
        head = fake_store.seed({"_posts/x.md": DOC})
        fake_store.fail_on.add("get_blob")

        async with create_test_client(test_settings, fake_store) as client:
            resp = await client.post("/api/webhook", json=_push(head))

        assert resp.status_code == 502
        assert resp.json()["status"] == "error"


class TestWebhookSecret:
    async def test_signed_push_accepted(
        self, test_settings: Settings, fake_store: FakeObjectStore
    ) -> None:
        settings = test_settings.model_copy(update={"webhook_secret": "s3cret"})
        head = fake_store.seed({"_posts/x.md": DOC})
        body = json.dumps(_push(head)).encode()

        async with create_test_client(settings, fake_store) as client:
            resp = await client.post(
                "/api/webhook",
                content=body,
                headers={"X-Hub-Signature-256": _sign("s3cret", body)},
            )

        assert resp.status_code == 200
        assert resp.json()["status"] == "imported"

    async def test_unsigned_push_rejected(
        self, test_settings: Settings, fake_store: FakeObjectStore
    ) -> None:
        settings = test_settings.model_copy(update={"webhook_secret": "s3cret"})

        async with create_test_client(settings, fake_store) as client:
            resp = await client.post("/api/webhook", json=_push("abc"))

        assert resp.status_code == 401
