"""Article and association ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from impact_blog.database import Base

if TYPE_CHECKING:
    from impact_blog.models.user import User

DEFAULT_COVER = "default-cover.jpg"


class Article(Base):
    """Blog article."""

    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    published_date: Mapped[datetime] = mapped_column(default=datetime.utcnow, index=True)
    last_edited: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    cover_picture_url: Mapped[str] = mapped_column(String(500), default=DEFAULT_COVER)
    article_content: Mapped[dict[str, Any]] = mapped_column(JSON)
    pinned: Mapped[bool] = mapped_column(default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    author_links: Mapped[list[ArticleAuthor]] = relationship(
        back_populates="article",
        cascade="all, delete-orphan",
        order_by="ArticleAuthor.position",
    )
    tag_links: Mapped[list[ArticleTag]] = relationship(
        back_populates="article",
        cascade="all, delete-orphan",
        order_by="ArticleTag.position",
    )

    @property
    def author_ids(self) -> list[int]:
        """Author ids in display order. Requires author_links to be loaded."""
        return [link.user_id for link in self.author_links]

    @property
    def tags(self) -> list[str]:
        """Tags in insertion order. Requires tag_links to be loaded."""
        return [link.tag for link in self.tag_links]


class ArticleAuthor(Base):
    """Membership of a user in an article's author set."""

    __tablename__ = "article_authors"

    article_id: Mapped[int] = mapped_column(
        ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    position: Mapped[int] = mapped_column()

    # Relationships
    article: Mapped[Article] = relationship(back_populates="author_links")
    user: Mapped[User] = relationship(back_populates="authorships")


class ArticleTag(Base):
    """Tag at a given position of an article's tag list."""

    __tablename__ = "article_tags"

    article_id: Mapped[int] = mapped_column(
        ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(primary_key=True)
    tag: Mapped[str] = mapped_column(String(20), index=True)

    # Relationships
    article: Mapped[Article] = relationship(back_populates="tag_links")
