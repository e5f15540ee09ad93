"""User ORM model."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from impact_blog.database import Base

if TYPE_CHECKING:
    from impact_blog.models.article import ArticleAuthor


class AdminStatus(StrEnum):
    """Closed set of user roles."""

    USER = "user"
    AUTHOR = "author"
    ADMIN = "admin"


class User(Base):
    """User account model for authentication and authorship."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    hashed_password: Mapped[str] = mapped_column(String(255))
    admin_status: Mapped[str] = mapped_column(String(10), default=AdminStatus.AUTHOR.value)
    personal_bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    linkedin_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    github_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    class_year: Mapped[int | None] = mapped_column(nullable=True)
    profile_picture_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    # Relationships
    article_refs: Mapped[list[UserArticle]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    authorships: Mapped[list[ArticleAuthor]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def article_ids(self) -> list[int]:
        """Ids in this user's back-reference list.

        Requires article_refs to be loaded.
        """
        return [ref.article_id for ref in self.article_refs]


class UserArticle(Base):
    """Back-reference from a user to an article they author.

    article_id has no foreign key: the row is kept in step with
    article_authors by the article service, not by the database.
    """

    __tablename__ = "user_articles"
    __table_args__ = (UniqueConstraint("user_id", "article_id", name="uq_user_article"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    article_id: Mapped[int] = mapped_column(index=True)
    added_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    # Relationships
    user: Mapped[User] = relationship(back_populates="article_refs")
