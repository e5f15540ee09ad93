"""Tests for article API endpoints."""

from collections.abc import Awaitable, Callable
from pathlib import Path

from httpx import AsyncClient

from impact_blog.models.article import DEFAULT_COVER
from impact_blog.models.user import User
from impact_blog.services.storage import LocalBlobStore

MakeUser = Callable[..., Awaitable[User]]
AuthHeaders = Callable[[User], dict[str, str]]

PNG = b"\x89PNG\r\n\x1a\nfake-image-bytes"


async def post_article(
    api_client: AsyncClient, headers: dict[str, str], title: str = "Hello", **fields
) -> dict:
    body = {"title": title, "article_content": "<p>Body</p>", **fields}
    response = await api_client.post("/api/articles", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateArticle:
    """Tests for POST /api/articles."""

    async def test_create_and_read_back(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        """A created article is readable and listed on the author's profile."""
        author = await make_user("writer")
        headers = auth_headers(author)

        response = await api_client.post(
            "/api/articles",
            json={"title": "Hello", "article_content": "<p>Hi</p>", "tags": ["impact"]},
            headers=headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        created = body["data"]
        assert created["title"] == "Hello"
        assert created["article_content"] == {"content": "<p>Hi</p>"}
        assert created["tags"] == ["impact"]
        assert created["cover_picture_url"] == DEFAULT_COVER
        assert [a["id"] for a in created["authors"]] == [author.id]

        detail = await api_client.get(f"/api/articles/{created['id']}")
        assert detail.status_code == 200
        detail_author = detail.json()["data"]["authors"][0]
        assert detail_author["username"] == "writer"
        assert "personal_bio" in detail_author

        me = await api_client.get("/api/users/me", headers=headers)
        assert [a["id"] for a in me.json()["data"]["articles"]] == [created["id"]]

    async def test_requires_authentication(self, api_client: AsyncClient) -> None:
        """Anonymous writes get the error envelope with a 401."""
        response = await api_client.post(
            "/api/articles", json={"title": "x", "article_content": "<p>x</p>"}
        )
        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Not authorized to access this route"
        assert "stack" in body

    async def test_plain_user_forbidden(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        reader = await make_user("reader", admin_status="user")
        response = await api_client.post(
            "/api/articles",
            json={"title": "x", "article_content": "<p>x</p>"},
            headers=auth_headers(reader),
        )
        assert response.status_code == 403

    async def test_missing_title(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        response = await api_client.post(
            "/api/articles", json={"article_content": "<p>x</p>"}, headers=auth_headers(author)
        )
        assert response.status_code == 400
        assert "title" in response.json()["message"]

    async def test_missing_content(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        response = await api_client.post(
            "/api/articles", json={"title": "No body"}, headers=auth_headers(author)
        )
        assert response.status_code == 400
        assert response.json()["message"] == "content required"

    async def test_unknown_tag(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        response = await api_client.post(
            "/api/articles",
            json={"title": "x", "article_content": "<p>x</p>", "tags": ["gossip"]},
            headers=auth_headers(author),
        )
        assert response.status_code == 400

    async def test_multipart_with_cover(
        self,
        api_client: AsyncClient,
        make_user: MakeUser,
        auth_headers: AuthHeaders,
        blob_store: LocalBlobStore,
    ) -> None:
        """A multipart body stores the uploaded cover and decodes JSON-encoded fields."""
        author = await make_user("writer")

        response = await api_client.post(
            "/api/articles",
            data={
                "title": "With cover",
                "article_content": "<p>Pictures</p>",
                "tags": '["impact", "products"]',
            },
            files={"coverImage": ("Team Photo.png", PNG, "image/png")},
            headers=auth_headers(author),
        )

        assert response.status_code == 201, response.text
        created = response.json()["data"]
        assert created["tags"] == ["impact", "products"]
        cover_url = created["cover_picture_url"]
        assert cover_url.startswith("/uploads/covers/")
        assert cover_url.endswith("-team-photo.png")
        stored = Path(blob_store.root) / cover_url.removeprefix("/uploads/")
        assert stored.read_bytes() == PNG

    async def test_non_image_cover_rejected(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        response = await api_client.post(
            "/api/articles",
            data={"title": "x", "article_content": "<p>x</p>"},
            files={"coverImage": ("notes.txt", b"hello", "text/plain")},
            headers=auth_headers(author),
        )
        assert response.status_code == 400


class TestListArticles:
    """Tests for GET /api/articles."""

    async def test_pagination(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        """Page two of twelve articles links both neighbours."""
        author = await make_user("writer")
        headers = auth_headers(author)
        for index in range(12):
            await post_article(api_client, headers, f"Post {index}")

        response = await api_client.get("/api/articles", params={"page": 2, "limit": 5})

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 5
        assert body["pagination"] == {
            "next": {"page": 3, "limit": 5},
            "prev": {"page": 1, "limit": 5},
        }
        assert [a["title"] for a in body["data"]] == [f"Post {i}" for i in range(6, 1, -1)]

    async def test_filter_and_select(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        """Filters narrow the results and select limits the fields."""
        author = await make_user("writer")
        headers = auth_headers(author)
        wanted = await post_article(api_client, headers, "Product news", tags=["products"])
        await post_article(api_client, headers, "Impact story", tags=["impact"])

        response = await api_client.get(
            "/api/articles", params={"tags": "products", "select": "title"}
        )

        body = response.json()
        assert body["count"] == 1
        assert body["data"] == [{"id": wanted["id"], "title": "Product news"}]

    async def test_repeated_param_matches_any(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        headers = auth_headers(author)
        await post_article(api_client, headers, "A", tags=["products"])
        await post_article(api_client, headers, "B", tags=["impact"])
        await post_article(api_client, headers, "C", tags=["engineering"])

        response = await api_client.get(
            "/api/articles", params=[("tags", "products"), ("tags", "impact")]
        )

        assert sorted(a["title"] for a in response.json()["data"]) == ["A", "B"]

    async def test_pinned_first(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        admin = await make_user("boss", admin_status="admin")
        older = await post_article(api_client, auth_headers(author), "Older")
        await post_article(api_client, auth_headers(author), "Newer")
        await api_client.patch(f"/api/articles/{older['id']}/pin", headers=auth_headers(admin))

        response = await api_client.get("/api/articles")

        assert [a["title"] for a in response.json()["data"]] == ["Older", "Newer"]

    async def test_malformed_filter(self, api_client: AsyncClient) -> None:
        """Operator tokens outside the known set are rejected, not executed."""
        response = await api_client.get("/api/articles", params={"title[where]": "1"})
        assert response.status_code == 400
        assert response.json()["success"] is False

    async def test_huge_page_falls_back_to_first(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        await post_article(api_client, auth_headers(author), "Only")

        response = await api_client.get(
            "/api/articles", params={"page": "100000000000000000000", "limit": "5"}
        )

        assert response.status_code == 200
        assert [a["title"] for a in response.json()["data"]] == ["Only"]

    async def test_huge_id_filter_rejected(self, api_client: AsyncClient) -> None:
        response = await api_client.get("/api/articles", params={"id": "100000000000000000000"})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid value for 'id'"

    async def test_unknown_select_field(self, api_client: AsyncClient) -> None:
        response = await api_client.get("/api/articles", params={"select": "hashed_password"})
        assert response.status_code == 400

    async def test_mine(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        other = await make_user("other")
        mine = await post_article(api_client, auth_headers(author), "Mine")
        await post_article(api_client, auth_headers(other), "Theirs")

        response = await api_client.get("/api/articles/mine", headers=auth_headers(author))

        body = response.json()
        assert body["count"] == 1
        assert body["data"][0]["id"] == mine["id"]

    async def test_get_missing(self, api_client: AsyncClient) -> None:
        response = await api_client.get("/api/articles/999")
        assert response.status_code == 404
        assert response.json()["message"] == "Article not found with id of 999"


class TestUpdateArticle:
    """Tests for PUT /api/articles/{id}."""

    async def test_author_updates(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        created = await post_article(api_client, auth_headers(author))

        response = await api_client.put(
            f"/api/articles/{created['id']}",
            json={"title": "Edited", "article_content": {"content": "<p>New</p>"}},
            headers=auth_headers(author),
        )

        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated["title"] == "Edited"
        assert updated["article_content"] == {"content": "<p>New</p>"}
        assert updated["published_date"] == created["published_date"]

    async def test_admin_updates_any(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        admin = await make_user("boss", admin_status="admin")
        created = await post_article(api_client, auth_headers(author))

        response = await api_client.put(
            f"/api/articles/{created['id']}",
            json={"title": "By admin"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert [a["id"] for a in response.json()["data"]["authors"]] == [author.id]

    async def test_other_author_forbidden(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        other = await make_user("other")
        created = await post_article(api_client, auth_headers(author))

        response = await api_client.put(
            f"/api/articles/{created['id']}", json={"title": "Hijack"}, headers=auth_headers(other)
        )

        assert response.status_code == 403

    async def test_missing_article(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        """Existence is checked before authorization."""
        reader = await make_user("reader", admin_status="user")
        response = await api_client.put(
            "/api/articles/999", json={"title": "x"}, headers=auth_headers(reader)
        )
        assert response.status_code == 404


class TestDeleteArticle:
    """Tests for DELETE /api/articles/{id}."""

    async def test_delete(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        """Deleting returns an empty payload and drops the back-reference."""
        author = await make_user("writer")
        headers = auth_headers(author)
        created = await post_article(api_client, headers)

        response = await api_client.delete(f"/api/articles/{created['id']}", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {}}
        assert (await api_client.get(f"/api/articles/{created['id']}")).status_code == 404
        me = await api_client.get("/api/users/me", headers=headers)
        assert me.json()["data"]["articles"] == []

    async def test_non_author_forbidden(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        other = await make_user("other")
        created = await post_article(api_client, auth_headers(author))

        response = await api_client.delete(
            f"/api/articles/{created['id']}", headers=auth_headers(other)
        )

        assert response.status_code == 403


class TestPinArticle:
    """Tests for PATCH /api/articles/{id}/pin."""

    async def test_toggle(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        admin = await make_user("boss", admin_status="admin")
        created = await post_article(api_client, auth_headers(author))
        url = f"/api/articles/{created['id']}/pin"

        first = await api_client.patch(url, headers=auth_headers(admin))
        second = await api_client.patch(url, headers=auth_headers(admin))
        explicit = await api_client.patch(url, json={"pinned": True}, headers=auth_headers(admin))

        assert first.json()["data"]["pinned"] is True
        assert second.json()["data"]["pinned"] is False
        assert explicit.json()["data"]["pinned"] is True

    async def test_author_forbidden(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        created = await post_article(api_client, auth_headers(author))

        response = await api_client.patch(
            f"/api/articles/{created['id']}/pin", headers=auth_headers(author)
        )

        assert response.status_code == 403

    async def test_missing_article(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        admin = await make_user("boss", admin_status="admin")
        response = await api_client.patch("/api/articles/999/pin", headers=auth_headers(admin))
        assert response.status_code == 404


class TestScenarios:
    """End-to-end flows across users and roles."""

    async def test_round_trip_plain_text(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        author = await make_user("writer")
        created = await post_article(
            api_client, auth_headers(author), article_content="hello", tags=["engineering"]
        )

        fetched = (await api_client.get(f"/api/articles/{created['id']}")).json()["data"]

        assert fetched["article_content"] == {"content": "hello"}
        assert fetched["tags"] == ["engineering"]
        assert fetched["cover_picture_url"] == DEFAULT_COVER

    async def test_owner_other_author_and_admin(
        self, api_client: AsyncClient, make_user: MakeUser, auth_headers: AuthHeaders
    ) -> None:
        """Only the owner and an admin may edit; the admin edit keeps the publish date."""
        registered = await api_client.post(
            "/api/users/register",
            json={
                "username": "alice",
                "name": "Alice",
                "email": "alice@example.com",
                "password": "securepassword123",
            },
        )
        alice_headers = {"Authorization": f"Bearer {registered.json()['token']}"}
        bob = await make_user("bob")
        carol = await make_user("carol", admin_status="admin")

        created = await post_article(api_client, alice_headers, "Alice's post")
        mine = await api_client.get("/api/articles/mine", headers=alice_headers)
        assert [a["id"] for a in mine.json()["data"]] == [created["id"]]

        url = f"/api/articles/{created['id']}"
        forbidden = await api_client.put(url, json={"title": "Bob"}, headers=auth_headers(bob))
        assert forbidden.status_code == 403

        allowed = await api_client.put(url, json={"title": "Carol"}, headers=auth_headers(carol))
        assert allowed.status_code == 200
        edited = allowed.json()["data"]
        assert edited["title"] == "Carol"
        assert edited["published_date"] == created["published_date"]
        assert edited["last_edited"] >= created["last_edited"]
