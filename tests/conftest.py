"""Pytest fixtures and configuration."""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing the app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-at-least-32-characters-long")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import impact_blog.models  # noqa: F401
from impact_blog.database import Base, enable_sqlite_savepoints, get_db
from impact_blog.main import app
from impact_blog.models.user import User
from impact_blog.services.errors import StorageError
from impact_blog.services.storage import BlobStore, LocalBlobStore, get_blob_store
from impact_blog.utils.security import create_access_token, hash_password

TEST_PASSWORD = "securepassword123"


class RecordingBlobStore(BlobStore):
    """In-memory blob store that can be told to fail deletions."""

    def __init__(self, fail_delete: bool = False) -> None:
        super().__init__("/uploads")
        self.saved: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_delete = fail_delete

    async def save(self, namespace: str, filename: str, data: bytes) -> str:
        url = self.url_for(namespace, filename)
        self.saved[url] = data
        return url

    async def delete(self, url: str) -> None:
        if self.fail_delete:
            raise StorageError(f"Could not delete {url}")
        self.deleted.append(url)


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine]:
    """Fresh in-memory database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Session for service-level tests; never committed."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_store() -> Callable[..., RecordingBlobStore]:
    """Factory for in-memory blob stores."""
    return RecordingBlobStore


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "uploads", "/uploads")


@pytest.fixture
def make_user(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[User]]:
    """Create and commit a user; returns the detached row."""

    async def _make_user(
        username: str = "author",
        admin_status: str = "author",
        email: str | None = None,
        name: str | None = None,
    ) -> User:
        async with session_factory() as session:
            user = User(
                username=username,
                email=email or f"{username}@example.com",
                name=name or username.title(),
                hashed_password=hash_password(TEST_PASSWORD),
                admin_status=admin_status,
            )
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Build a bearer header for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token(data={"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
    blob_store: LocalBlobStore,
) -> AsyncGenerator[AsyncClient]:
    """HTTP client whose requests run against the in-memory database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_blob_store() -> LocalBlobStore:
        return blob_store

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = override_get_blob_store

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
