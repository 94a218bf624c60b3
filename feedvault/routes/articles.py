"""Article read API: newest-first partitions and ranges, point lookup by (feedId, contentHash)"""
from fastapi import APIRouter, HTTPException, Depends, Query
from datetime import date
from typing import Optional

from feedvault.database import Database, get_database
from feedvault.exceptions import StorageError
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/articles", tags=["articles"])

MAX_PAGE_SIZE = 1000


@router.get("")
async def list_articles(
    start: date,
    end: Optional[date] = None,
    includeArchived: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=MAX_PAGE_SIZE),
    db: Database = Depends(get_database)
):
    """Articles published between start and end (inclusive), newest first"""
    end = end or start
    try:
        reader = db.reader if includeArchived else db.hot_store
        articles = await reader.get_range(start, end)

        return {
            'articles': [article.model_dump(mode='json') for article in articles[skip:skip + limit]],
            'total': len(articles),
            'start': min(start, end).isoformat(),
            'end': max(start, end).isoformat(),
            'skip': skip,
            'limit': limit
        }

    except StorageError as e:
        logger.error(f"Error listing articles: {e}")
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/partitions/{partition_date}")
async def get_partition(
    partition_date: date,
    limit: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE),
    includeArchived: bool = False,
    db: Database = Depends(get_database)
):
    """One day's articles, newest first"""
    try:
        reader = db.reader if includeArchived else db.hot_store
        articles = await reader.get_partition(partition_date, limit)

        return {
            'partitionKey': partition_date.isoformat(),
            'articles': [article.model_dump(mode='json') for article in articles],
            'count': len(articles)
        }

    except StorageError as e:
        logger.error(f"Error reading partition {partition_date}: {e}")
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/{feed_id}/{content_hash}")
async def get_article(
    feed_id: str,
    content_hash: str,
    db: Database = Depends(get_database)
):
    """Single article through the dedup index, from hot or cold storage"""
    try:
        entry = await db.dedup_index.lookup(feed_id, content_hash)
        if not entry:
            raise HTTPException(status_code=404, detail="Article not found")

        article = await db.reader.get(entry.location)
        if not article:
            raise HTTPException(status_code=404, detail="Article no longer stored")

        return article.model_dump(mode='json')

    except HTTPException:
        raise
    except StorageError as e:
        logger.error(f"Error getting article {feed_id}/{content_hash}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
