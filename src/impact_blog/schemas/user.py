"""Pydantic schemas for user and authentication API endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from impact_blog.schemas.article import ArticleSummary


class UserCreate(BaseModel):
    """Schema for user registration."""

    username: str = Field(
        min_length=3,
        max_length=50,
        description="Unique username (3-50 characters)",
    )
    name: str = Field(min_length=1, max_length=100, description="Display name")
    email: EmailStr = Field(description="Valid email address")
    password: str = Field(
        min_length=8,
        max_length=100,
        description="Password (8-100 characters)",
    )
    linkedin_url: str | None = Field(default=None, description="LinkedIn profile URL")
    github_url: str | None = Field(default=None, description="GitHub profile URL")
    personal_bio: str | None = Field(default=None, description="Short biography")
    class_year: int | None = Field(
        default=None, ge=1900, le=2200, description="Graduation class year"
    )

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Validate username contains only allowed characters."""
        if not v.replace("_", "").replace("-", "").isalnum():
            msg = "Username can only contain letters, numbers, underscores, and hyphens"
            raise ValueError(msg)
        return v.lower()

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class UserLogin(BaseModel):
    """Schema for user login request."""

    email: str = Field(min_length=1, description="Email address")
    password: str = Field(min_length=1, description="Password")


class ProfileUpdate(BaseModel):
    """Whitelisted profile fields a user may change on themselves."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(
        default=None, min_length=1, max_length=100, description="Display name"
    )
    linkedin_url: str | None = Field(default=None, description="LinkedIn profile URL")
    personal_bio: str | None = Field(default=None, description="Short biography")
    class_year: int | None = Field(
        default=None, ge=1900, le=2200, description="Graduation class year"
    )
    github_url: str | None = Field(default=None, description="GitHub profile URL")
    profile_picture_url: str | None = Field(default=None, description="Profile picture URL")

    @field_validator("name")
    @classmethod
    def name_not_null(cls, v: str | None) -> str:
        """Display name may be changed but never cleared."""
        if v is None or not v.strip():
            raise ValueError("Display name cannot be empty")
        return v.strip()


class RoleUpdate(BaseModel):
    """Body of the role change endpoint; validated by the route."""

    admin_status: str | None = Field(default=None, description="user, author or admin")


class AuthUser(BaseModel):
    """User info returned alongside a token."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="User ID")
    name: str = Field(description="Display name")
    username: str = Field(description="Username")
    email: str = Field(description="Email address")
    admin_status: str = Field(description="Role")


class AuthResponse(BaseModel):
    """Response for register and login."""

    success: bool = Field(default=True, description="Whether the request succeeded")
    token: str = Field(description="JWT bearer token")
    user: AuthUser = Field(description="Authenticated user")


class UserResponse(BaseModel):
    """Response schema for user data (excludes password)."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="User ID")
    username: str = Field(description="Username")
    email: str = Field(description="Email address")
    name: str = Field(description="Display name")
    admin_status: str = Field(description="Role")
    personal_bio: str | None = Field(default=None, description="Short biography")
    linkedin_url: str | None = Field(default=None, description="LinkedIn profile URL")
    github_url: str | None = Field(default=None, description="GitHub profile URL")
    class_year: int | None = Field(default=None, description="Graduation class year")
    profile_picture_url: str | None = Field(default=None, description="Profile picture URL")
    created_at: datetime = Field(description="When the user was created")
    articles: list[int] = Field(default_factory=list, description="Authored article IDs")


class UserProfile(UserResponse):
    """User with authored articles expanded."""

    articles: list[ArticleSummary] = Field(default_factory=list, description="Authored articles")

