"""Pydantic schemas for article API endpoints."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from impact_blog.schemas.common import PageRef


class Tag(StrEnum):
    """Closed set of article tags."""

    ENGINEERING = "engineering"
    PRODUCTS = "products"
    IMPACT = "impact"
    NONPROFITS = "nonprofits"


class AuthorSummary(BaseModel):
    """Author info attached to article listings."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="User ID")
    name: str = Field(description="Display name")
    username: str = Field(description="Username")
    profile_picture_url: str | None = Field(default=None, description="Profile picture URL")


class AuthorProfile(AuthorSummary):
    """Author info attached to a single article."""

    linkedin_url: str | None = Field(default=None, description="LinkedIn profile URL")
    github_url: str | None = Field(default=None, description="GitHub profile URL")
    personal_bio: str | None = Field(default=None, description="Short biography")


class ArticleBase(BaseModel):
    """Fields shared by article create and update payloads."""

    model_config = ConfigDict(extra="ignore")

    authors: list[int] | None = Field(default=None, description="Author user IDs")
    cover_picture_url: str | None = Field(default=None, description="Cover image URL")
    article_content: Any = Field(default=None, description="HTML string or {content: html}")
    tags: list[Tag] | None = Field(default=None, description="Article tags")
    pinned: bool | None = Field(default=None, description="Pin state (admins only)")

    @field_validator("authors", mode="before")
    @classmethod
    def wrap_single_author(cls, v: Any) -> Any:
        """Accept a lone author id where a list is expected."""
        if v is None or isinstance(v, list):
            return v
        return [v]


class ArticleCreate(ArticleBase):
    """Schema for creating an article."""

    title: str = Field(min_length=1, max_length=200, description="Article title")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """Trim whitespace and reject blank titles."""
        v = v.strip()
        if not v:
            msg = "Please add a title"
            raise ValueError(msg)
        return v


class ArticleUpdate(ArticleBase):
    """Schema for updating an article. All fields optional."""

    title: str | None = Field(default=None, min_length=1, max_length=200, description="Title")
    remove_cover: bool = Field(default=False, description="Reset the cover to the default")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        """Trim whitespace and reject blank titles."""
        if v is None:
            return v
        v = v.strip()
        if not v:
            msg = "Please add a title"
            raise ValueError(msg)
        return v


class PinUpdate(BaseModel):
    """Body of the pin toggle endpoint."""

    pinned: bool | None = Field(default=None, description="Explicit pin state; omit to flip")


class ArticleResponse(BaseModel):
    """Article as returned by the API."""

    id: int = Field(description="Article ID")
    title: str = Field(description="Title")
    published_date: datetime = Field(description="When the article was published")
    last_edited: datetime = Field(description="When the article was last edited")
    authors: list[AuthorSummary] = Field(default_factory=list, description="Authors")
    cover_picture_url: str = Field(description="Cover image URL or default sentinel")
    article_content: dict[str, Any] = Field(description="Normalized content {content: html}")
    pinned: bool = Field(description="Whether the article is pinned")
    tags: list[str] = Field(default_factory=list, description="Tags")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last write timestamp")


class ArticleDetail(ArticleResponse):
    """Single article with full author profiles."""

    authors: list[AuthorProfile] = Field(default_factory=list, description="Authors")


class ArticleSummary(BaseModel):
    """Compact article info attached to user profiles."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Article ID")
    title: str = Field(description="Title")
    published_date: datetime = Field(description="Publication timestamp")
    cover_picture_url: str = Field(description="Cover image URL")
    tags: list[str] = Field(default_factory=list, description="Tags")
    pinned: bool = Field(description="Whether the article is pinned")


class ArticleListResponse(BaseModel):
    """Paginated article listing."""

    success: bool = Field(default=True, description="Whether the request succeeded")
    count: int = Field(description="Number of articles on this page")
    pagination: dict[str, PageRef] = Field(
        default_factory=dict, description="Neighbouring pages ('next', 'prev')"
    )
    data: list[dict[str, Any]] = Field(default_factory=list, description="Articles")
