"""Tests for the blog API client."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from impact_blog.client import AuthSession, BlogClient, CoverImage
from impact_blog.services.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    StorageError,
    ValidationError,
)

AUTH_RESPONSE = {
    "success": True,
    "token": "jwt-token",
    "user": {
        "id": 1,
        "name": "Writer",
        "username": "writer",
        "email": "writer@example.com",
        "admin_status": "author",
    },
}

ARTICLE = {
    "id": 5,
    "title": "Hello",
    "article_content": {"content": "<p>Hi</p>"},
    "tags": ["impact"],
    "pinned": False,
}


@pytest.fixture
def session_path(tmp_path: Path) -> Path:
    return tmp_path / "session.json"


@pytest.fixture
def blog_client(session_path: Path) -> BlogClient:
    """Client with a session bound to a temporary file."""
    return BlogClient(base_url="http://blog.test/api", session=AuthSession.load(session_path))


def mock_http(blog_client: BlogClient, *responses: httpx.Response):
    """Patch the underlying HTTP client to return the given responses in order."""
    patcher = patch.object(blog_client, "_get_client")
    mock_get_client = patcher.start()
    mock_client = AsyncMock()
    mock_client.request.side_effect = list(responses)
    mock_get_client.return_value = mock_client
    return patcher, mock_client


class TestAuthSession:
    """Tests for session persistence."""

    def test_load_missing_file(self, session_path: Path) -> None:
        session = AuthSession.load(session_path)
        assert session.token is None
        assert not session.is_authenticated
        assert session.path == session_path

    def test_persist_and_load(self, session_path: Path) -> None:
        session = AuthSession.load(session_path)
        session.update("abc", {"id": 1})
        session.persist()

        reloaded = AuthSession.load(session_path)
        assert reloaded.token == "abc"
        assert reloaded.user == {"id": 1}

    def test_clear_removes_file(self, session_path: Path) -> None:
        session = AuthSession.load(session_path)
        session.update("abc", None)
        session.persist()

        session.clear()

        assert session.token is None
        assert not session_path.exists()

    def test_corrupt_file_ignored(self, session_path: Path) -> None:
        session_path.write_text("{not json", encoding="utf-8")
        session = AuthSession.load(session_path)
        assert session.token is None

    def test_persist_without_path(self) -> None:
        with pytest.raises(ValueError):
            AuthSession(token="abc").persist()


class TestBlogClientAuth:
    """Tests for login, logout and token handling."""

    def test_default_headers_without_token(self, blog_client: BlogClient) -> None:
        assert "Authorization" not in blog_client.default_headers

    async def test_login_stores_and_persists_session(
        self, blog_client: BlogClient, session_path: Path
    ) -> None:
        patcher, mock_client = mock_http(blog_client, httpx.Response(200, json=AUTH_RESPONSE))
        try:
            await blog_client.login("writer@example.com", "securepassword123")
        finally:
            patcher.stop()

        assert blog_client.session.token == "jwt-token"
        assert blog_client.default_headers["Authorization"] == "Bearer jwt-token"
        assert json.loads(session_path.read_text())["token"] == "jwt-token"
        call = mock_client.request.call_args
        assert call.kwargs["method"] == "POST"
        assert call.kwargs["url"] == "users/login"
        assert call.kwargs["json"] == {
            "email": "writer@example.com",
            "password": "securepassword123",
        }

    async def test_unauthorized_clears_session(
        self, blog_client: BlogClient, session_path: Path
    ) -> None:
        """A 401 on any call forgets the stored token."""
        blog_client.session.update("stale-token", {"id": 1})
        blog_client.session.persist()
        patcher, _ = mock_http(
            blog_client,
            httpx.Response(
                401, json={"success": False, "message": "Not authorized to access this route"}
            ),
        )
        try:
            with pytest.raises(AuthenticationError, match="Not authorized"):
                await blog_client.my_articles()
        finally:
            patcher.stop()

        assert blog_client.session.token is None
        assert not session_path.exists()

    def test_logout(self, blog_client: BlogClient) -> None:
        blog_client.session.update("abc", None)
        blog_client.logout()
        assert not blog_client.session.is_authenticated


class TestBlogClientErrors:
    """Tests for mapping error envelopes onto exceptions."""

    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (400, ValidationError),
            (403, AuthorizationError),
            (404, NotFoundError),
            (500, StorageError),
        ],
    )
    async def test_status_mapping(
        self, blog_client: BlogClient, status: int, error: type[Exception]
    ) -> None:
        patcher, _ = mock_http(
            blog_client, httpx.Response(status, json={"success": False, "message": "nope"})
        )
        try:
            with pytest.raises(error, match="nope"):
                await blog_client.get_article(5)
        finally:
            patcher.stop()

    async def test_network_error(self, blog_client: BlogClient) -> None:
        patcher, mock_client = mock_http(blog_client)
        mock_client.request.side_effect = httpx.ConnectError("refused")
        try:
            with pytest.raises(StorageError, match="Request failed"):
                await blog_client.list_articles()
        finally:
            patcher.stop()


class TestBlogClientArticles:
    """Tests for article calls."""

    async def test_list_articles_passes_params(self, blog_client: BlogClient) -> None:
        listing = {"success": True, "count": 1, "pagination": {}, "data": [ARTICLE]}
        patcher, mock_client = mock_http(blog_client, httpx.Response(200, json=listing))
        try:
            result = await blog_client.list_articles({"tags": "impact", "page": 2})
        finally:
            patcher.stop()

        assert result["data"][0]["id"] == 5
        call = mock_client.request.call_args
        assert call.kwargs["url"] == "articles"
        assert call.kwargs["params"] == {"tags": "impact", "page": 2}

    async def test_create_article_json(self, blog_client: BlogClient) -> None:
        patcher, mock_client = mock_http(
            blog_client, httpx.Response(201, json={"success": True, "data": ARTICLE})
        )
        try:
            result = await blog_client.create_article(
                {"title": "Hello", "article_content": "<p>Hi</p>"}
            )
        finally:
            patcher.stop()

        assert result["data"]["id"] == 5
        call = mock_client.request.call_args
        assert call.kwargs["json"] == {"title": "Hello", "article_content": "<p>Hi</p>"}
        assert call.kwargs["files"] is None

    async def test_create_article_with_cover_uses_multipart(self, blog_client: BlogClient) -> None:
        """With a cover, list and object fields are JSON-encoded form values."""
        patcher, mock_client = mock_http(
            blog_client, httpx.Response(201, json={"success": True, "data": ARTICLE})
        )
        cover = CoverImage(filename="cover.png", data=b"png", content_type="image/png")
        try:
            await blog_client.create_article(
                {
                    "title": "Hello",
                    "article_content": {"content": "<p>Hi</p>"},
                    "tags": ["impact"],
                    "pinned": False,
                },
                cover=cover,
            )
        finally:
            patcher.stop()

        call = mock_client.request.call_args
        assert call.kwargs["json"] is None
        assert call.kwargs["data"] == {
            "title": "Hello",
            "article_content": '{"content": "<p>Hi</p>"}',
            "tags": '["impact"]',
            "pinned": "false",
        }
        assert call.kwargs["files"] == {"coverImage": ("cover.png", b"png", "image/png")}

    async def test_pin_without_value_sends_no_body(self, blog_client: BlogClient) -> None:
        patcher, mock_client = mock_http(
            blog_client, httpx.Response(200, json={"success": True, "data": ARTICLE})
        )
        try:
            await blog_client.pin_article(5)
        finally:
            patcher.stop()

        call = mock_client.request.call_args
        assert call.kwargs["method"] == "PATCH"
        assert call.kwargs["url"] == "articles/5/pin"
        assert call.kwargs["json"] is None

    async def test_delete_article(self, blog_client: BlogClient) -> None:
        patcher, mock_client = mock_http(
            blog_client, httpx.Response(200, json={"success": True, "data": {}})
        )
        try:
            result = await blog_client.delete_article(5)
        finally:
            patcher.stop()

        assert result == {"success": True, "data": {}}
        assert mock_client.request.call_args.kwargs["method"] == "DELETE"


class TestBlogClientProfile:
    """Tests for profile calls."""

    async def test_update_profile_refreshes_cached_user(
        self, blog_client: BlogClient, session_path: Path
    ) -> None:
        blog_client.session.update("jwt-token", dict(AUTH_RESPONSE["user"]))
        profile = {**AUTH_RESPONSE["user"], "name": "Renamed", "articles": []}
        patcher, mock_client = mock_http(
            blog_client, httpx.Response(200, json={"success": True, "data": profile})
        )
        try:
            await blog_client.update_profile(name="Renamed")
        finally:
            patcher.stop()

        assert mock_client.request.call_args.kwargs["json"] == {"name": "Renamed"}
        assert blog_client.session.user["name"] == "Renamed"
        assert "articles" not in blog_client.session.user
        assert json.loads(session_path.read_text())["user"]["name"] == "Renamed"
