"""User and authentication API endpoints."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from impact_blog.database import get_db
from impact_blog.models.article import Article
from impact_blog.models.user import AdminStatus, User
from impact_blog.schemas.article import ArticleSummary
from impact_blog.schemas.common import Envelope, ListEnvelope
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
from impact_blog.services.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from impact_blog.utils.security import (
    AdminUser,
    CurrentUser,
    create_access_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def user_to_response(user: User) -> UserResponse:
    """Convert a User model to UserResponse schema.

    Requires user.article_refs to be loaded.
    """
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        admin_status=user.admin_status,
        personal_bio=user.personal_bio,
        linkedin_url=user.linkedin_url,
        github_url=user.github_url,
        class_year=user.class_year,
        profile_picture_url=user.profile_picture_url,
        created_at=user.created_at,
        articles=user.article_ids,
    )


def token_response(user: User) -> AuthResponse:
    """Issue a token for the user and wrap it with their basic info."""
    access_token = create_access_token(data={"sub": str(user.id)})
    return AuthResponse(token=access_token, user=AuthUser.model_validate(user))


async def load_user(db: AsyncSession, user_id: int) -> User:
    """Load a user with back-references.

    Raises:
        NotFoundError: If the user does not exist.
    """
    query = (
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.article_refs))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"User not found with id of {user_id}")
    return user


async def load_profile(db: AsyncSession, user_id: int) -> UserProfile:
    """Build a profile with the user's back-referenced articles expanded.

    Back-references to articles that no longer exist are skipped.
    """
    user = await load_user(db, user_id)
    articles: list[Article] = []
    if user.article_ids:
        query = (
            select(Article)
            .where(Article.id.in_(user.article_ids))
            .options(selectinload(Article.tag_links))
            .order_by(Article.published_date.desc(), Article.id.desc())
        )
        result = await db.execute(query)
        articles = list(result.scalars().all())

    return UserProfile(
        **user_to_response(user).model_dump(exclude={"articles"}),
        articles=[ArticleSummary.model_validate(article) for article in articles],
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Register a new user.

    New accounts get the author role. The password is securely hashed
    before storage.

    Raises:
        ConflictError: If username or email already exists
    """
    # Check if username already exists
    username_query = select(User).where(User.username == user_data.username)
    username_result = await db.execute(username_query)
    if username_result.scalar_one_or_none():
        raise ConflictError("Username already registered")

    # Check if email already exists
    email_query = select(User).where(User.email == user_data.email)
    email_result = await db.execute(email_query)
    if email_result.scalar_one_or_none():
        raise ConflictError("Email already registered")

    new_user = User(
        username=user_data.username,
        email=user_data.email,
        name=user_data.name,
        hashed_password=hash_password(user_data.password),
        admin_status=AdminStatus.AUTHOR.value,
        linkedin_url=user_data.linkedin_url,
        github_url=user_data.github_url,
        personal_bio=user_data.personal_bio,
        class_year=user_data.class_year,
        created_at=datetime.now(UTC),
    )
    db.add(new_user)
    try:
        await db.flush()
    except IntegrityError as e:
        # A concurrent registration took the username or email after the checks above
        raise ConflictError("Username or email already registered") from e
    await db.refresh(new_user)

    logger.info("Registered user %s (%s)", new_user.id, new_user.username)
    return token_response(new_user)


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Authenticate user and return JWT token.

    Accepts the email address (or username) in the email field.

    Raises:
        AuthenticationError: If credentials are invalid
    """
    identifier = credentials.email.strip().lower()
    query = select(User).where(or_(User.email == identifier, User.username == identifier))
    result = await db.execute(query)
    user = result.scalar_one_or_none()

    # Validate user exists and password is correct
    if not user or not verify_password(credentials.password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")

    return token_response(user)


@router.get("/me", response_model=Envelope[UserProfile])
async def get_me(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserProfile]:
    """Get the current authenticated user's profile with their articles.

    Requires a valid JWT token in the Authorization header.
    """
    return Envelope[UserProfile](data=await load_profile(db, current_user.id))


@router.put("/me", response_model=Envelope[UserProfile])
async def update_me(
    current_user: CurrentUser,
    profile_data: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserProfile]:
    """Update whitelisted profile fields of the current user.

    Only fields present in the body are changed; other keys are ignored.
    """
    for field_name in profile_data.model_fields_set:
        setattr(current_user, field_name, getattr(profile_data, field_name))

    if profile_data.model_fields_set:
        await db.flush()

    return Envelope[UserProfile](data=await load_profile(db, current_user.id))


@router.get("", response_model=ListEnvelope[UserResponse])
async def list_users(
    admin: AdminUser,  # noqa: ARG001 - Required for role enforcement
    db: AsyncSession = Depends(get_db),
) -> ListEnvelope[UserResponse]:
    """List all users.

    Requires the admin role.
    """
    query = select(User).options(selectinload(User.article_refs)).order_by(User.id)
    result = await db.execute(query)
    users = result.scalars().all()
    return ListEnvelope[UserResponse](
        count=len(users), data=[user_to_response(user) for user in users]
    )


@router.get("/{user_id}", response_model=Envelope[UserProfile])
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserProfile]:
    """Get a user's public profile with their articles."""
    return Envelope[UserProfile](data=await load_profile(db, user_id))


@router.put("/{user_id}/role", response_model=Envelope[UserResponse])
async def update_user_role(
    user_id: int,
    admin: AdminUser,
    role_data: RoleUpdate,
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserResponse]:
    """Change a user's role.

    Requires the admin role.

    Raises:
        ValidationError: If admin_status is missing or not a known role
        NotFoundError: If the user does not exist
    """
    valid_roles = {status.value for status in AdminStatus}
    if role_data.admin_status not in valid_roles:
        raise ValidationError("Please provide a valid role")

    user = await load_user(db, user_id)
    user.admin_status = role_data.admin_status
    await db.flush()

    logger.info("Admin %s set role of user %s to %s", admin.id, user.id, user.admin_status)
    return Envelope[UserResponse](data=user_to_response(user))
