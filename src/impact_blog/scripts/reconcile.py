"""Repair user back-references so they match article author lists.

Run with ``impact-blog-reconcile`` or ``python -m impact_blog.scripts.reconcile``.
Safe to run repeatedly.
"""

import asyncio
import logging

from impact_blog.database import async_session
from impact_blog.services.articles import ArticleService
from impact_blog.services.storage import get_blob_store

logger = logging.getLogger(__name__)


async def reconcile_back_references() -> dict[str, int]:
    """Run one reconciliation pass in its own session and commit it."""
    blob_store = await get_blob_store()
    async with async_session() as session:
        try:
            service = ArticleService(session, blob_store)
            counts = await service.reconcile_back_references()
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return counts


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    counts = asyncio.run(reconcile_back_references())
    logger.info("Done: %(added)d added, %(removed)d removed", counts)


if __name__ == "__main__":
    main()
