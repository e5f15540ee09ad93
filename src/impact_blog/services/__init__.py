"""Business logic: article coordination, queries, content and storage.

Only the error types are re-exported here so the API client can use them
without loading the database layer.
"""

from impact_blog.services.errors import (
    AuthenticationError,
    AuthorizationError,
    BlogError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "BlogError",
    "ConflictError",
    "NotFoundError",
    "StorageError",
    "ValidationError",
]
