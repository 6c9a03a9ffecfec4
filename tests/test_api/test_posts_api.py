"""Integration tests for post CRUD endpoints and the exports they trigger."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tests.conftest import FakeObjectStore, create_test_client

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from httpx import AsyncClient

    from postsync.config import Settings


@pytest.fixture
async def client(
    test_settings: Settings, fake_store: FakeObjectStore
) -> AsyncGenerator[AsyncClient]:
    async with create_test_client(test_settings, fake_store) as ac:
        yield ac


class TestCreate:
    async def test_create_published_post_exports_it(
        self, client: AsyncClient, auth_headers: dict[str, str], fake_store: FakeObjectStore
    ) -> None:
        resp = await client.post(
            "/api/posts",
            json={
                "title": "Hello World",
                "content": "Body",
                "category": "News",
                "created_at": "2024-01-02 08:00",
            },
            headers=auth_headers,
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["post"]["slug"] == "hello-world"
        assert data["post"]["export_path"] == "_posts/news/2024-01-02-hello-world.md"
        assert data["post"]["permalink"] == "https://blog.example.com/2024/01/02/hello-world/"
        assert data["export"]["outcome"] == "committed"
        assert data["post"]["sha"] is not None
        assert list(fake_store.files()) == ["_posts/news/2024-01-02-hello-world.md"]

    async def test_create_draft_does_not_export(
        self, client: AsyncClient, auth_headers: dict[str, str], fake_store: FakeObjectStore
    ) -> None:
        resp = await client.post(
            "/api/posts", json={"title": "Draft", "status": "draft"}, headers=auth_headers
        )

        assert resp.status_code == 201
        assert resp.json()["export"] is None
        assert fake_store.created_commits == []

    async def test_create_requires_title(
        self, client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        resp = await client.post("/api/posts", json={"content": "x"}, headers=auth_headers)
        assert resp.status_code == 422

    async def test_invalid_date_rejected(
        self, client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        resp = await client.post(
            "/api/posts",
            json={"title": "Bad", "created_at": "not a date"},
            headers=auth_headers,
        )
        assert resp.status_code == 422

    async def test_requires_token(self, client: AsyncClient) -> None:
        resp = await client.post("/api/posts", json={"title": "x"})
        assert resp.status_code == 401


class TestReadUpdateDelete:
    async def test_list_and_get(self, client: AsyncClient, auth_headers: dict[str, str]) -> None:
        await client.post("/api/posts", json={"title": "One"}, headers=auth_headers)
        await client.post("/api/posts", json={"title": "Two"}, headers=auth_headers)

        listing = await client.get("/api/posts", headers=auth_headers)
        single = await client.get("/api/posts/2", headers=auth_headers)
        missing = await client.get("/api/posts/99", headers=auth_headers)

        assert [p["title"] for p in listing.json()] == ["One", "Two"]
        assert single.json()["title"] == "Two"
        assert missing.status_code == 404

    async def test_update_moves_file(
        self, client: AsyncClient, auth_headers: dict[str, str], fake_store: FakeObjectStore
    ) -> None:
        created = await client.post(
            "/api/posts",
            json={"title": "Hello", "created_at": "2024-01-02"},
            headers=auth_headers,
        )
        post_id = created.json()["post"]["id"]

        resp = await client.put(
            f"/api/posts/{post_id}",
            json={"slug": "hello-again", "content": "Edited"},
            headers=auth_headers,
        )

        assert resp.status_code == 200
        assert resp.json()["export"]["outcome"] == "committed"
        files = fake_store.files()
        assert list(files) == ["_posts/2024-01-02-hello-again.md"]
        assert files["_posts/2024-01-02-hello-again.md"].endswith("Edited\n")

    async def test_delete_removes_file_and_post(
        self, client: AsyncClient, auth_headers: dict[str, str], fake_store: FakeObjectStore
    ) -> None:
        created = await client.post("/api/posts", json={"title": "Gone"}, headers=auth_headers)
        post_id = created.json()["post"]["id"]
        assert len(fake_store.files()) == 1

        resp = await client.delete(f"/api/posts/{post_id}", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json()["export"]["outcome"] == "committed"
        assert fake_store.files() == {}
        assert (await client.get(f"/api/posts/{post_id}", headers=auth_headers)).status_code == 404
