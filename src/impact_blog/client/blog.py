"""Client for the blog REST API.

Wraps every endpoint the server exposes. Authentication state lives in an
``AuthSession`` passed in by the caller; an authentication failure from any
authenticated call clears it.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from impact_blog.client.base import BaseAPIClient
from impact_blog.client.session import AuthSession
from impact_blog.services.errors import AuthenticationError

logger = logging.getLogger(__name__)

COVER_FIELD = "coverImage"
SESSION_USER_FIELDS = ("id", "name", "username", "email", "admin_status")


@dataclass(frozen=True)
class CoverImage:
    """Image file to upload as an article cover."""

    filename: str
    data: bytes
    content_type: str = "image/jpeg"


def _form_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value)


class BlogClient(BaseAPIClient):
    """Async client for the blog API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api",
        session: AuthSession | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root, including the ``/api`` prefix.
            session: Authentication session; a fresh in-memory one if omitted.
            timeout: Request timeout in seconds.
        """
        super().__init__(base_url=base_url, timeout=timeout)
        self.session = session if session is not None else AuthSession()

    @property
    def default_headers(self) -> dict[str, str]:
        """Return default headers, with the bearer token when signed in."""
        headers = {"Accept": "application/json"}
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"
        return headers

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> dict[str, Any]:
        try:
            return await super()._request(method, endpoint, **kwargs)
        except AuthenticationError:
            if self.session.is_authenticated:
                logger.info("Session rejected by the server; clearing it")
                self.session.clear()
            raise

    def _store_session(self, response: dict[str, Any]) -> dict[str, Any]:
        token = response.get("token")
        if token:
            self.session.update(token, response.get("user"))
            if self.session.path is not None:
                self.session.persist()
        return response

    # Users

    async def register(
        self,
        username: str,
        name: str,
        email: str,
        password: str,
        **profile: Any,
    ) -> dict[str, Any]:
        """Register an account and sign in as it."""
        payload = {
            "username": username,
            "name": name,
            "email": email,
            "password": password,
            **profile,
        }
        return self._store_session(await self._request("POST", "/users/register", json=payload))

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Sign in and keep the returned token in the session."""
        payload = {"email": email, "password": password}
        return self._store_session(await self._request("POST", "/users/login", json=payload))

    def logout(self) -> None:
        """Forget the session. The server keeps no session state."""
        self.session.clear()

    async def get_profile(self) -> dict[str, Any]:
        """Get the signed-in user's profile."""
        return await self.get("/users/me")

    async def update_profile(self, **fields: Any) -> dict[str, Any]:
        """Update profile fields of the signed-in user and refresh the cached user."""
        response = await self._request("PUT", "/users/me", json=fields)
        profile = response.get("data") or {}
        if self.session.token and profile:
            user = {key: profile[key] for key in SESSION_USER_FIELDS if key in profile}
            self.session.update(self.session.token, user)
            if self.session.path is not None:
                self.session.persist()
        return response

    async def list_users(self) -> dict[str, Any]:
        """List all users (admin only)."""
        return await self.get("/users")

    async def get_user(self, user_id: int) -> dict[str, Any]:
        """Get a user's public profile."""
        return await self.get(f"/users/{user_id}")

    async def update_role(self, user_id: int, admin_status: str) -> dict[str, Any]:
        """Change a user's role (admin only)."""
        return await self._request(
            "PUT", f"/users/{user_id}/role", json={"admin_status": admin_status}
        )

    # Articles

    async def list_articles(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """List articles.

        Args:
            params: Query parameters such as ``{"tags": "impact",
                "published_date[gte]": "2024-01-01", "page": 2}``.
        """
        return await self.get("/articles", params=params)

    async def get_article(self, article_id: int) -> dict[str, Any]:
        """Get one article with full author profiles."""
        return await self.get(f"/articles/{article_id}")

    async def my_articles(self) -> dict[str, Any]:
        """List the signed-in user's articles."""
        return await self.get("/articles/mine")

    def _article_body(
        self, data: dict[str, Any], cover: CoverImage | None
    ) -> dict[str, Any]:
        if cover is None:
            return {"json": data}
        form = {key: _form_value(value) for key, value in data.items() if value is not None}
        files = {COVER_FIELD: (cover.filename, cover.data, cover.content_type)}
        return {"data": form, "files": files}

    async def create_article(
        self, data: dict[str, Any], cover: CoverImage | None = None
    ) -> dict[str, Any]:
        """Create an article, uploading a cover image when given."""
        return await self._request("POST", "/articles", **self._article_body(data, cover))

    async def update_article(
        self, article_id: int, data: dict[str, Any], cover: CoverImage | None = None
    ) -> dict[str, Any]:
        """Update an article, replacing its cover image when given."""
        return await self._request(
            "PUT", f"/articles/{article_id}", **self._article_body(data, cover)
        )

    async def delete_article(self, article_id: int) -> dict[str, Any]:
        """Delete an article."""
        return await self._request("DELETE", f"/articles/{article_id}")

    async def pin_article(self, article_id: int, pinned: bool | None = None) -> dict[str, Any]:
        """Pin or unpin an article (admin only); flips it when ``pinned`` is None."""
        body = None if pinned is None else {"pinned": pinned}
        return await self._request("PATCH", f"/articles/{article_id}/pin", json=body)
