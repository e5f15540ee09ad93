"""Article API endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from impact_blog.api.forms import query_params_to_dict, read_article_payload, validate_payload
from impact_blog.config import get_settings
from impact_blog.database import get_db
from impact_blog.models.article import Article
from impact_blog.schemas.article import (
    ArticleCreate,
    ArticleDetail,
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdate,
    AuthorProfile,
    AuthorSummary,
    PinUpdate,
)
from impact_blog.schemas.common import Envelope, ListEnvelope
from impact_blog.services.articles import ArticleService
from impact_blog.services.storage import BlobStore, get_blob_store
from impact_blog.utils.security import CurrentUser

router = APIRouter(prefix="/articles", tags=["articles"])


async def get_article_service(
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
) -> ArticleService:
    """Build the article service for a request."""
    return ArticleService(db, blob_store)


def article_to_response(article: Article) -> ArticleResponse:
    """Convert an Article model to ArticleResponse schema.

    Requires author_links (with users) and tag_links to be loaded.
    """
    return ArticleResponse(
        id=article.id,
        title=article.title,
        published_date=article.published_date,
        last_edited=article.last_edited,
        authors=[AuthorSummary.model_validate(link.user) for link in article.author_links],
        cover_picture_url=article.cover_picture_url,
        article_content=article.article_content,
        pinned=article.pinned,
        tags=article.tags,
        created_at=article.created_at,
        updated_at=article.updated_at,
    )


def article_to_detail(article: Article) -> ArticleDetail:
    """Convert an Article model to ArticleDetail with full author profiles."""
    summary = article_to_response(article)
    return ArticleDetail(
        **summary.model_dump(exclude={"authors"}),
        authors=[AuthorProfile.model_validate(link.user) for link in article.author_links],
    )


@router.get("", response_model=ArticleListResponse)
async def list_articles(
    request: Request,
    service: ArticleService = Depends(get_article_service),
) -> ArticleListResponse:
    """List articles.

    Any query parameter other than select, sort, page and limit filters the
    results; comparisons use bracket keys such as ``published_date[gte]``.
    Pinned articles come first unless ``sort`` is given.
    """
    page = await service.list_articles(query_params_to_dict(request.query_params))
    include = set(page.query.projection) if page.query.projection else None
    data = [
        article_to_response(article).model_dump(mode="json", include=include)
        for article in page.articles
    ]
    return ArticleListResponse(count=len(data), pagination=page.pagination, data=data)


@router.get("/mine", response_model=ListEnvelope[ArticleResponse])
async def list_my_articles(
    current_user: CurrentUser,
    service: ArticleService = Depends(get_article_service),
) -> ListEnvelope[ArticleResponse]:
    """List the caller's articles, pinned first then most recent.

    Requires authentication.
    """
    articles = await service.list_for_author(current_user.id)
    data = [article_to_response(article) for article in articles]
    return ListEnvelope[ArticleResponse](count=len(data), data=data)


@router.get("/{article_id}", response_model=Envelope[ArticleDetail])
async def get_article(
    article_id: int,
    service: ArticleService = Depends(get_article_service),
) -> Envelope[ArticleDetail]:
    """Get a single article with full author profiles."""
    article = await service.get_article(article_id)
    return Envelope[ArticleDetail](data=article_to_detail(article))


@router.post("", response_model=Envelope[ArticleResponse], status_code=201)
async def create_article(
    request: Request,
    current_user: CurrentUser,
    service: ArticleService = Depends(get_article_service),
) -> Envelope[ArticleResponse]:
    """Create an article.

    Accepts a JSON body or a multipart form with an optional ``coverImage``
    file. The caller is always one of the authors.
    Requires the author or admin role.
    """
    payload, upload = await read_article_payload(request, get_settings().max_upload_bytes)
    data = validate_payload(ArticleCreate, payload)
    article = await service.create_article(current_user, data, upload)
    return Envelope[ArticleResponse](data=article_to_response(article))


@router.put("/{article_id}", response_model=Envelope[ArticleResponse])
async def update_article(
    article_id: int,
    request: Request,
    current_user: CurrentUser,
    service: ArticleService = Depends(get_article_service),
) -> Envelope[ArticleResponse]:
    """Update an article.

    Same body shapes as create; ``remove_cover=true`` resets the cover.
    Only authors of the article and admins can update it.
    """
    payload, upload = await read_article_payload(request, get_settings().max_upload_bytes)
    data = validate_payload(ArticleUpdate, payload)
    article = await service.update_article(article_id, current_user, data, upload)
    return Envelope[ArticleResponse](data=article_to_response(article))


@router.delete("/{article_id}")
async def delete_article(
    article_id: int,
    current_user: CurrentUser,
    service: ArticleService = Depends(get_article_service),
) -> dict:
    """Delete an article.

    Only authors of the article and admins can delete it.
    """
    await service.delete_article(article_id, current_user)
    return {"success": True, "data": {}}


@router.patch("/{article_id}/pin", response_model=Envelope[ArticleResponse])
async def pin_article(
    article_id: int,
    current_user: CurrentUser,
    body: PinUpdate | None = None,
    service: ArticleService = Depends(get_article_service),
) -> Envelope[ArticleResponse]:
    """Pin or unpin an article; without a body the pin state is flipped.

    Requires the admin role.
    """
    pinned = body.pinned if body is not None else None
    article = await service.set_pinned(article_id, current_user, pinned)
    return Envelope[ArticleResponse](data=article_to_response(article))
