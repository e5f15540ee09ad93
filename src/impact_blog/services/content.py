"""Normalization of article bodies and cover images.

Article content is accepted either as a raw HTML string or as an object
with a ``content`` field. Both are reduced to the stored shape
``{"content": "<html>"}``. Cover images arrive as an upload, a removal
flag, or an explicit URL, and are reduced to a single URL string.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from bs4 import BeautifulSoup

from impact_blog.models.article import DEFAULT_COVER
from impact_blog.services.errors import StorageError, ValidationError
from impact_blog.services.storage import BlobStore

logger = logging.getLogger(__name__)

COVERS_NAMESPACE = "covers"
ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})

BLOCKED_TAGS = ["script", "style", "iframe", "object", "embed", "form"]
IMG_ATTRIBUTES = frozenset({"src", "alt", "title", "width", "height", "class"})
URL_ATTRIBUTES = frozenset({"href", "src", "action", "formaction", "xlink:href"})
_SCRIPT_URL = re.compile(r"^(javascript|vbscript|data:text/html)", re.IGNORECASE)


@dataclass(frozen=True)
class RawHtml:
    """Content supplied as an HTML string."""

    html: str


@dataclass(frozen=True)
class WrappedContent:
    """Content supplied as an object with a ``content`` field."""

    content: str


ArticleContent = RawHtml | WrappedContent


def classify_content(value: Any) -> ArticleContent:
    """Map an incoming content value onto one of the accepted shapes.

    Objects without a usable ``content`` string are serialized to JSON and
    treated as raw HTML.

    Raises:
        ValidationError: If the value is missing or empty.
    """
    if value is None:
        raise ValidationError("content required")

    if isinstance(value, str):
        if not value.strip():
            raise ValidationError("content required")
        return RawHtml(value)

    if isinstance(value, dict):
        if not value:
            raise ValidationError("content required")
        if "content" in value:
            inner = value["content"]
            if isinstance(inner, dict):
                return WrappedContent(normalize_content(inner)["content"])
            if inner is None or (isinstance(inner, str) and not inner.strip()):
                raise ValidationError("content required")
            if isinstance(inner, str):
                return WrappedContent(inner)

    try:
        fallback = json.dumps(value, sort_keys=True, default=str)
    except (TypeError, ValueError) as e:
        raise ValidationError("content must be HTML or an object with a content field") from e
    if fallback in ("{}", "[]", '""', "null"):
        raise ValidationError("content required")
    return RawHtml(fallback)


def normalize_content(value: Any) -> dict[str, str]:
    """Reduce accepted content shapes to ``{"content": html}``."""
    match classify_content(value):
        case RawHtml(html=html):
            return {"content": html}
        case WrappedContent(content=content):
            return {"content": content}
    raise ValidationError("content required")


def _is_script_url(value: Any) -> bool:
    if isinstance(value, list):
        value = " ".join(value)
    compact = re.sub(r"\s+", "", str(value))
    return bool(_SCRIPT_URL.match(compact))


def sanitize_html(html: str) -> str:
    """Strip active content from editor HTML.

    Image ``class`` attributes set by the editor are kept. Text without any
    elements is returned as given.
    """
    if "<" not in html:
        return html

    soup = BeautifulSoup(html, "html.parser")
    if soup.find(True) is None:
        return html
    for tag in soup.find_all(BLOCKED_TAGS):
        if not tag.decomposed:
            tag.decompose()

    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            name = attr.lower()
            if name.startswith("on"):
                del tag.attrs[attr]
            elif name in URL_ATTRIBUTES and _is_script_url(tag.attrs[attr]):
                del tag.attrs[attr]
            elif tag.name == "img" and name not in IMG_ATTRIBUTES:
                del tag.attrs[attr]

    return str(soup)


def prepare_content(value: Any) -> dict[str, str]:
    """Normalize then sanitize article content for storage."""
    normalized = normalize_content(value)
    cleaned = sanitize_html(normalized["content"])
    if not cleaned.strip():
        raise ValidationError("content required")
    return {"content": cleaned}


@dataclass(frozen=True)
class CoverUpload:
    """An uploaded cover image, read into memory."""

    filename: str
    content_type: str
    data: bytes


def cover_filename(original: str, now: datetime | None = None) -> str:
    """Collision-resistant stored name: ``<epoch-ms>-<slug>``."""
    moment = now or datetime.now(UTC)
    stamp = int(moment.timestamp() * 1000)
    slug = re.sub(r"\s+", "-", original.strip().lower())
    slug = re.sub(r"[^a-z0-9._-]", "", slug) or "cover"
    return f"{stamp}-{slug}"


def validate_cover_upload(upload: CoverUpload, max_bytes: int | None = None) -> None:
    """Reject uploads that are not images or are too large."""
    if upload.content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(f"Unsupported cover image type: {upload.content_type}")
    if not upload.data:
        raise ValidationError("Cover image is empty")
    if max_bytes is not None and len(upload.data) > max_bytes:
        raise ValidationError(f"Cover image exceeds {max_bytes} bytes")


async def discard_cover(blob_store: BlobStore, url: str | None) -> None:
    """Delete a previously stored cover. Failures are logged, never raised."""
    if not url or url == DEFAULT_COVER or not blob_store.owns(url):
        return
    try:
        await blob_store.delete(url)
    except StorageError as e:
        logger.warning("Failed to delete old cover %s: %s", url, e)


@dataclass(frozen=True)
class CoverResolution:
    """Outcome of cover resolution.

    ``stale_url`` is the previous cover, to be discarded once the article
    row referencing ``url`` is saved. ``stored`` is set when ``url`` points
    at a file written by this resolution.
    """

    url: str
    stale_url: str | None = None
    stored: bool = False


async def resolve_cover_image(
    blob_store: BlobStore,
    existing_url: str | None,
    upload: CoverUpload | None = None,
    remove_requested: bool = False,
    requested_url: str | None = None,
    max_bytes: int | None = None,
) -> CoverResolution:
    """Decide the cover URL to persist.

    Precedence: a new upload, then a removal request, then an explicit URL,
    then the existing URL, then the default cover. Nothing is deleted here;
    the caller discards ``stale_url`` after the article is saved, or the
    new upload if saving fails.

    Args:
        blob_store: Store used to write the upload.
        existing_url: Cover currently stored on the article (None on create).
        upload: Newly uploaded image, if any.
        remove_requested: Whether the client asked to clear the cover.
        requested_url: Cover URL sent explicitly by the client.
        max_bytes: Size limit for uploads.

    Raises:
        ValidationError: If the upload is not an acceptable image.
        StorageError: If the upload cannot be written.
    """
    if upload is not None:
        validate_cover_upload(upload, max_bytes)
        new_url = await blob_store.save(
            COVERS_NAMESPACE, cover_filename(upload.filename), upload.data
        )
        stale = existing_url if existing_url != new_url else None
        return CoverResolution(url=new_url, stale_url=stale, stored=True)

    if remove_requested:
        return CoverResolution(url=DEFAULT_COVER, stale_url=existing_url)

    if requested_url is not None and requested_url.strip():
        return CoverResolution(url=requested_url)

    return CoverResolution(url=existing_url or DEFAULT_COVER)
