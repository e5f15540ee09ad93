"""Article lifecycle: create, update, delete, pin and listing.

Authorship lives in ``article_authors``; every author also keeps a
back-reference row in ``user_articles``. The store offers no multi-row
transaction guarantee to this service, so back-reference writes are made
per author inside their own SAVEPOINT and a failure is logged rather than
propagated. ``reconcile_back_references`` repairs any drift.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, exists, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from impact_blog.config import Settings, get_settings
from impact_blog.models.article import Article, ArticleAuthor, ArticleTag
from impact_blog.models.user import User, UserArticle
from impact_blog.schemas.article import ArticleCreate, ArticleUpdate, Tag
from impact_blog.services.content import (
    CoverResolution,
    CoverUpload,
    discard_cover,
    prepare_content,
    resolve_cover_image,
)
from impact_blog.services.errors import (
    AuthorizationError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from impact_blog.services.permissions import Actor, can_create, can_mutate, can_pin
from impact_blog.services.query import (
    DEFAULT_SORT,
    ArticleQuery,
    build_article_query,
    compile_filters,
    compile_sort,
)
from impact_blog.services.storage import BlobStore

logger = logging.getLogger(__name__)


@dataclass
class ArticlePage:
    """One page of a listing plus what is needed to describe its neighbours."""

    query: ArticleQuery
    total: int
    articles: list[Article]

    @property
    def pagination(self) -> dict:
        return self.query.paginate(self.total)


def _article_options() -> tuple:
    return (
        selectinload(Article.author_links).selectinload(ArticleAuthor.user),
        selectinload(Article.tag_links),
    )


class ArticleService:
    """Coordinates multi-step article operations against the store."""

    def __init__(
        self,
        db: AsyncSession,
        blob_store: BlobStore,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.blob_store = blob_store
        self.settings = settings or get_settings()

    # Reads -----------------------------------------------------------------

    async def _load(self, article_id: int, refresh: bool = False) -> Article | None:
        query = select(Article).where(Article.id == article_id).options(*_article_options())
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_article(self, article_id: int) -> Article:
        """Fetch an article with authors and tags loaded.

        Raises:
            NotFoundError: If no article has this id.
        """
        article = await self._load(article_id)
        if article is None:
            raise NotFoundError(f"Article not found with id of {article_id}")
        return article

    async def list_articles(self, params: Mapping[str, Any]) -> ArticlePage:
        """Run a filtered, sorted and paginated listing.

        Raises:
            ValidationError: If the parameters describe a malformed query.
        """
        query = build_article_query(
            params,
            default_limit=self.settings.default_page_size,
            max_limit=self.settings.max_page_size,
        )
        conditions = compile_filters(query.filters)

        count_query = select(func.count()).select_from(Article).where(*conditions)
        total_result = await self.db.execute(count_query)
        total = total_result.scalar_one()

        results_query = (
            select(Article)
            .where(*conditions)
            .options(*_article_options())
            .order_by(*compile_sort(query.sort))
            .offset(query.skip)
            .limit(query.limit)
        )
        results = await self.db.execute(results_query)
        return ArticlePage(query=query, total=total, articles=list(results.scalars().all()))

    async def list_for_author(self, user_id: int) -> list[Article]:
        """All articles a user authors, pinned first then most recent."""
        authored = exists(
            select(ArticleAuthor.article_id).where(
                ArticleAuthor.article_id == Article.id,
                ArticleAuthor.user_id == user_id,
            )
        )
        query = (
            select(Article)
            .where(authored)
            .options(*_article_options())
            .order_by(*compile_sort(DEFAULT_SORT))
        )
        results = await self.db.execute(query)
        return list(results.scalars().all())

    # Writes ----------------------------------------------------------------

    async def _resolve_authors(
        self, requested: Sequence[int] | None, creator_id: int | None = None
    ) -> list[int]:
        """De-duplicate an author list, add the creator, and check every id exists."""
        author_ids = list(requested or [])
        if creator_id is not None and creator_id not in author_ids:
            author_ids.append(creator_id)
        author_ids = list(dict.fromkeys(author_ids))
        if not author_ids:
            raise ValidationError("An article needs at least one author")

        result = await self.db.execute(select(User.id).where(User.id.in_(author_ids)))
        known = set(result.scalars().all())
        missing = [str(author_id) for author_id in author_ids if author_id not in known]
        if missing:
            raise ValidationError(f"Unknown author id(s): {', '.join(missing)}")
        return author_ids

    async def _flush(self, action: str) -> None:
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not {action}") from e

    async def _flush_with_cover(self, action: str, cover: CoverResolution) -> None:
        """Flush, then drop whichever cover file the outcome leaves unreferenced."""
        try:
            await self._flush(action)
        except StorageError:
            if cover.stored:
                await discard_cover(self.blob_store, cover.url)
            raise
        await discard_cover(self.blob_store, cover.stale_url)

    async def create_article(
        self,
        user: Actor,
        data: ArticleCreate,
        upload: CoverUpload | None = None,
    ) -> Article:
        """Create an article and add it to every author's back-references.

        Raises:
            AuthorizationError: If the user may not create or pin articles.
            ValidationError: If content, authors or the cover upload are invalid.
            StorageError: If the article cannot be persisted.
        """
        if not can_create(user):
            raise AuthorizationError(
                f"User role {user.admin_status} is not authorized to create articles"
            )
        if data.pinned is not None and not can_pin(user):
            raise AuthorizationError("Only admins can pin articles")

        author_ids = await self._resolve_authors(data.authors, creator_id=user.id)
        content = prepare_content(data.article_content)
        cover = await resolve_cover_image(
            self.blob_store,
            existing_url=None,
            upload=upload,
            requested_url=data.cover_picture_url,
            max_bytes=self.settings.max_upload_bytes,
        )

        now = datetime.now(UTC)
        article = Article(
            title=data.title,
            published_date=now,
            last_edited=now,
            cover_picture_url=cover.url,
            article_content=content,
            pinned=bool(data.pinned),
            created_at=now,
            updated_at=now,
            author_links=[
                ArticleAuthor(user_id=author_id, position=position)
                for position, author_id in enumerate(author_ids)
            ],
            tag_links=[
                ArticleTag(tag=Tag(tag).value, position=position)
                for position, tag in enumerate(data.tags or [])
            ],
        )
        self.db.add(article)
        await self._flush_with_cover("save article", cover)
        article_id = article.id

        for author_id in author_ids:
            await self.add_back_reference(author_id, article_id)

        logger.info("User %s created article %s", user.id, article_id)
        return await self._reload(article_id)

    async def update_article(
        self,
        article_id: int,
        user: Actor,
        data: ArticleUpdate,
        upload: CoverUpload | None = None,
    ) -> Article:
        """Apply a partial update to an article.

        Changes to the author list are written to the article only; the
        users' back-references are left for the reconciliation pass.

        Raises:
            NotFoundError: If the article does not exist.
            AuthorizationError: If the user is neither an author nor an admin,
                or tries to change pin state without being an admin.
            ValidationError: If supplied content, authors or upload are invalid.
        """
        article = await self._load(article_id)
        if article is None:
            raise NotFoundError(f"Article not found with id of {article_id}")
        if not can_mutate(article, user):
            raise AuthorizationError(f"User {user.id} is not authorized to update this article")
        if data.pinned is not None and not can_pin(user):
            raise AuthorizationError("Only admins can pin articles")

        if data.title is not None:
            article.title = data.title
        if data.article_content is not None:
            article.article_content = prepare_content(data.article_content)
        if data.authors is not None:
            author_ids = await self._resolve_authors(data.authors)
            self._replace_authors(article, author_ids)
        if data.tags is not None:
            self._replace_tags(article, [Tag(tag).value for tag in data.tags])
        if data.pinned is not None:
            article.pinned = data.pinned

        cover = await resolve_cover_image(
            self.blob_store,
            existing_url=article.cover_picture_url,
            upload=upload,
            remove_requested=data.remove_cover,
            requested_url=data.cover_picture_url,
            max_bytes=self.settings.max_upload_bytes,
        )
        article.cover_picture_url = cover.url
        article.last_edited = datetime.now(UTC)

        await self._flush_with_cover("update article", cover)
        logger.info("User %s updated article %s", user.id, article.id)
        return await self._reload(article.id)

    @staticmethod
    def _replace_authors(article: Article, author_ids: list[int]) -> None:
        wanted = {author_id: position for position, author_id in enumerate(author_ids)}
        kept = []
        for link in article.author_links:
            if link.user_id in wanted:
                link.position = wanted.pop(link.user_id)
                kept.append(link)
        for author_id, position in wanted.items():
            kept.append(ArticleAuthor(user_id=author_id, position=position))
        article.author_links = sorted(kept, key=lambda link: link.position)

    @staticmethod
    def _replace_tags(article: Article, tags: list[str]) -> None:
        links = article.tag_links
        for position, tag in enumerate(tags):
            if position < len(links):
                links[position].tag = tag
            else:
                links.append(ArticleTag(tag=tag, position=position))
        del links[len(tags) :]

    async def delete_article(self, article_id: int, user: Actor) -> None:
        """Delete an article after removing it from every author's back-references.

        Raises:
            NotFoundError: If the article does not exist.
            AuthorizationError: If the user is neither an author nor an admin.
        """
        article = await self._load(article_id)
        if article is None:
            raise NotFoundError(f"Article not found with id of {article_id}")
        if not can_mutate(article, user):
            raise AuthorizationError(f"User {user.id} is not authorized to delete this article")

        cover_url = article.cover_picture_url
        for author_id in article.author_ids:
            await self.remove_back_reference(author_id, article_id)

        await self.db.delete(article)
        await self._flush("delete article")
        await discard_cover(self.blob_store, cover_url)
        logger.info("User %s deleted article %s", user.id, article_id)

    async def set_pinned(self, article_id: int, user: Actor, pinned: bool | None = None) -> Article:
        """Set pin state, or flip it when no explicit value is given.

        Raises:
            NotFoundError: If the article does not exist.
            AuthorizationError: If the user is not an admin.
        """
        article = await self._load(article_id)
        if article is None:
            raise NotFoundError(f"Article not found with id of {article_id}")
        if not can_pin(user):
            raise AuthorizationError(
                f"User role {user.admin_status} is not authorized to pin articles"
            )

        article.pinned = (not article.pinned) if pinned is None else pinned
        await self._flush("pin article")
        return await self._reload(article.id)

    async def _reload(self, article_id: int) -> Article:
        article = await self._load(article_id, refresh=True)
        if article is None:
            raise NotFoundError(f"Article not found with id of {article_id}")
        return article

    # Back-references -------------------------------------------------------

    async def add_back_reference(self, user_id: int, article_id: int) -> bool:
        """Add an article to a user's back-references. Idempotent, best-effort."""
        try:
            async with self.db.begin_nested():
                existing = await self.db.execute(
                    select(UserArticle.id).where(
                        UserArticle.user_id == user_id,
                        UserArticle.article_id == article_id,
                    )
                )
                if existing.scalar_one_or_none() is None:
                    self.db.add(
                        UserArticle(
                            user_id=user_id,
                            article_id=article_id,
                            added_at=datetime.now(UTC),
                        )
                    )
        except SQLAlchemyError as e:
            logger.warning(
                "Failed to add article %s to user %s back-references: %s", article_id, user_id, e
            )
            return False
        return True

    async def remove_back_reference(self, user_id: int, article_id: int) -> bool:
        """Remove an article from a user's back-references. Idempotent, best-effort."""
        try:
            async with self.db.begin_nested():
                await self.db.execute(
                    delete(UserArticle).where(
                        UserArticle.user_id == user_id,
                        UserArticle.article_id == article_id,
                    )
                )
        except SQLAlchemyError as e:
            logger.warning(
                "Failed to remove article %s from user %s back-references: %s",
                article_id,
                user_id,
                e,
            )
            return False
        return True

    async def reconcile_back_references(self) -> dict[str, int]:
        """Make every user's back-references match the article author lists.

        Safe to run repeatedly.

        Returns:
            Counts of back-references added and removed.
        """
        links_result = await self.db.execute(
            select(ArticleAuthor.user_id, ArticleAuthor.article_id)
        )
        expected = {(row.user_id, row.article_id) for row in links_result.all()}

        refs_result = await self.db.execute(select(UserArticle.user_id, UserArticle.article_id))
        actual = {(row.user_id, row.article_id) for row in refs_result.all()}

        added = 0
        for user_id, article_id in sorted(expected - actual):
            if await self.add_back_reference(user_id, article_id):
                added += 1

        removed = 0
        for user_id, article_id in sorted(actual - expected):
            if await self.remove_back_reference(user_id, article_id):
                removed += 1

        logger.info("Reconciled back-references: %d added, %d removed", added, removed)
        return {"added": added, "removed": removed}
