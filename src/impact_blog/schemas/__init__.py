"""Pydantic schemas for request/response validation."""

from impact_blog.schemas.article import (
    ArticleCreate,
    ArticleDetail,
    ArticleListResponse,
    ArticleResponse,
    ArticleSummary,
    ArticleUpdate,
    AuthorProfile,
    AuthorSummary,
    PinUpdate,
    Tag,
)
from impact_blog.schemas.common import Envelope, ErrorResponse, ListEnvelope, PageRef
from impact_blog.schemas.user import (
    AuthResponse,
    AuthUser,
    ProfileUpdate,
    RoleUpdate,
    UserCreate,
    UserLogin,
    UserProfile,
    UserResponse,
)

__all__ = [
    # Envelopes
    "Envelope",
    "ErrorResponse",
    "ListEnvelope",
    "PageRef",
    # Article schemas
    "ArticleCreate",
    "ArticleDetail",
    "ArticleListResponse",
    "ArticleResponse",
    "ArticleSummary",
    "ArticleUpdate",
    "AuthorProfile",
    "AuthorSummary",
    "PinUpdate",
    "Tag",
    # User schemas
    "AuthResponse",
    "AuthUser",
    "ProfileUpdate",
    "RoleUpdate",
    "UserCreate",
    "UserLogin",
    "UserProfile",
    "UserResponse",
]
