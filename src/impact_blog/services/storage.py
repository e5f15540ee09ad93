"""Blob store for uploaded images."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

import aiofiles
import aiofiles.os

from impact_blog.config import get_settings
from impact_blog.services.errors import StorageError

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Abstract store that keeps binary files and hands back public URLs."""

    def __init__(self, url_prefix: str) -> None:
        self.url_prefix = "/" + url_prefix.strip("/")

    def url_for(self, namespace: str, filename: str) -> str:
        """Public URL of a stored file."""
        return f"{self.url_prefix}/{namespace}/{filename}"

    def owns(self, url: str | None) -> bool:
        """Whether a URL points inside this store."""
        return bool(url) and url.startswith(self.url_prefix + "/")

    @abstractmethod
    async def save(self, namespace: str, filename: str, data: bytes) -> str:
        """Store data and return its public URL.

        Raises:
            StorageError: If the write fails.
        """
        ...

    @abstractmethod
    async def delete(self, url: str) -> None:
        """Remove the file behind a public URL.

        Raises:
            StorageError: If the removal fails.
        """
        ...


class LocalBlobStore(BlobStore):
    """Blob store backed by a directory that is also served statically."""

    def __init__(self, root: str | Path, url_prefix: str = "/uploads") -> None:
        super().__init__(url_prefix)
        self.root = Path(root)

    def _path_for_url(self, url: str) -> Path:
        if not self.owns(url):
            raise StorageError(f"URL is not managed by this store: {url}")
        relative = url[len(self.url_prefix) + 1 :]
        path = (self.root / relative).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise StorageError(f"URL escapes the upload directory: {url}")
        return path

    async def save(self, namespace: str, filename: str, data: bytes) -> str:
        directory = self.root / namespace
        path = directory / filename
        try:
            await aiofiles.os.makedirs(directory, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise StorageError(f"Could not store {filename}: {e}") from e

        logger.info("Stored %s (%d bytes)", path, len(data))
        return self.url_for(namespace, filename)

    async def delete(self, url: str) -> None:
        path = self._path_for_url(url)
        try:
            await aiofiles.os.remove(path)
        except OSError as e:
            raise StorageError(f"Could not delete {url}: {e}") from e


async def get_blob_store() -> BlobStore:
    """Factory function to create the configured blob store.

    Can be used as a FastAPI dependency.
    """
    settings = get_settings()
    return LocalBlobStore(settings.upload_dir, settings.uploads_url_prefix)
