"""Base HTTP client for talking to the blog API."""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from impact_blog.services.errors import BlogError, StorageError, error_for_status


class BaseAPIClient(ABC):
    """Abstract base class for API clients.

    Provides common functionality for HTTP requests and maps the API's
    error envelope onto the application's error types.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the base API client.

        Args:
            base_url: The base URL for the API.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    @abstractmethod
    def default_headers(self) -> dict[str, str]:
        """Return default headers for API requests."""
        ...

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Make an HTTP request to the API.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: API endpoint path.
            params: Query parameters.
            json: JSON body.
            data: Form fields (multipart when files are given).
            files: Files for a multipart body.
            headers: Additional headers to include.

        Returns:
            JSON response as a dictionary.

        Raises:
            BlogError: The error type matching the response status.
            StorageError: If the API cannot be reached.
        """
        client = await self._get_client()
        url = f"{endpoint.lstrip('/')}"

        request_headers = dict(self.default_headers)
        if headers:
            request_headers.update(headers)

        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                json=json,
                data=data,
                files=files,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            raise StorageError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise StorageError(f"Request failed: {e}") from e

        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Handle the HTTP response.

        Args:
            response: The HTTP response object.

        Returns:
            JSON response as a dictionary.

        Raises:
            BlogError: The error type matching the response status.
        """
        if response.status_code >= 400:
            raise self._error_from_response(response)

        try:
            return response.json()
        except ValueError as e:
            raise BlogError(f"Invalid JSON response: {e}", status_code=response.status_code) from e

    @staticmethod
    def _error_from_response(response: httpx.Response) -> BlogError:
        message = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("detail")
        return error_for_status(response.status_code, message or response.text or None)

    async def get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a GET request to the API."""
        return await self._request("GET", endpoint, params=params)

    async def __aenter__(self) -> "BaseAPIClient":
        """Async context manager entry."""
        await self._get_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
