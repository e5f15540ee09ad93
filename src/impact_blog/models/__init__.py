"""SQLAlchemy ORM models."""

from impact_blog.models.article import DEFAULT_COVER, Article, ArticleAuthor, ArticleTag
from impact_blog.models.user import AdminStatus, User, UserArticle

__all__ = [
    "DEFAULT_COVER",
    "AdminStatus",
    "Article",
    "ArticleAuthor",
    "ArticleTag",
    "User",
    "UserArticle",
]
