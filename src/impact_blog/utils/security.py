"""Security utilities for password hashing, JWT handling and role checks."""

from collections.abc import Callable, Coroutine
from datetime import UTC, datetime, timedelta
from typing import Annotated, Any

import bcrypt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from impact_blog.config import get_settings
from impact_blog.database import get_db
from impact_blog.models.user import User
from impact_blog.services.errors import AuthenticationError, AuthorizationError

# OAuth2 scheme for Bearer token authentication; missing tokens are reported
# through AuthenticationError so they share the error envelope.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)


def hash_password(password: str) -> str:
    """Hash a plain text password using bcrypt."""
    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain text password against a hashed password."""
    password_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token.

    Args:
        data: Payload data to encode in the token. The "sub" (subject) claim
              must be a string (e.g., {"sub": str(user_id)}).
        expires_delta: Optional custom expiration time. Defaults to settings value.

    Returns:
        Encoded JWT token string
    """
    settings = get_settings()
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.jwt_access_token_expire_minutes)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT access token.

    Args:
        token: The JWT token string to decode

    Returns:
        Decoded token payload if valid, None if invalid or expired
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError:
        return None


async def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get the current authenticated user from JWT token.

    This is a FastAPI dependency that validates the JWT token from the
    Authorization header and returns the corresponding user.

    Raises:
        AuthenticationError: If the token is missing, invalid, expired, or
            its user no longer exists.
    """
    if not token:
        raise AuthenticationError("Not authorized to access this route")

    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Not authorized to access this route")

    user_id_str: str | None = payload.get("sub")
    if user_id_str is None:
        raise AuthenticationError("Not authorized to access this route")

    try:
        user_id = int(user_id_str)
    except ValueError:
        raise AuthenticationError("Not authorized to access this route") from None

    # Look up user in database
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise AuthenticationError("User not found")

    return user


# Type alias for use in route dependencies
CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: str) -> Callable[..., Coroutine[Any, Any, User]]:
    """Build a dependency that admits only users holding one of the roles."""

    async def check_role(current_user: CurrentUser) -> User:
        if current_user.admin_status not in roles:
            raise AuthorizationError(
                f"User role {current_user.admin_status} is not authorized to access this route"
            )
        return current_user

    return check_role


AdminUser = Annotated[User, Depends(require_roles("admin"))]
