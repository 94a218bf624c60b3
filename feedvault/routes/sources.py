"""Feed source management API endpoints"""
from fastapi import APIRouter, HTTPException, Depends, Body
from pydantic import ValidationError

from feedvault.database import Database, get_database
from feedvault.exceptions import DuplicateSourceError
from feedvault.models.source import FeedSource
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sources", tags=["sources"])


@router.get("")
async def list_sources(
    enabled_only: bool = False,
    db: Database = Depends(get_database)
):
    """List configured feeds, most important tier first"""
    sources = await (db.registry.list_enabled() if enabled_only else db.registry.list_all())
    return {
        'sources': [source.model_dump() for source in sources],
        'total': len(sources)
    }


@router.post("", status_code=201)
async def create_source(
    source: FeedSource,
    db: Database = Depends(get_database)
):
    """Register a new feed"""
    if await db.registry.get(source.feedId):
        raise HTTPException(status_code=400, detail="Source with this feedId already exists")
    if await db.registry.find_by_url(source.url):
        raise HTTPException(status_code=400, detail="Source with this URL already exists")

    try:
        saved = await db.registry.save(source)
    except DuplicateSourceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"Created new source: {source.name}")
    return saved.model_dump()


@router.get("/{feed_id}")
async def get_source(
    feed_id: str,
    db: Database = Depends(get_database)
):
    """Get a single feed by id"""
    source = await db.registry.get(feed_id)
    if not source:
        raise HTTPException(status_code=404, detail="Source not found")
    return source.model_dump()


@router.put("/{feed_id}")
async def update_source(
    feed_id: str,
    updates: dict = Body(...),
    db: Database = Depends(get_database)
):
    """Update a feed; takes effect from the next ingestion run"""
    existing = await db.registry.get(feed_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Source not found")

    update_data = {k: v for k, v in updates.items() if v is not None and k != 'feedId'}
    try:
        updated = FeedSource(**{**existing.model_dump(), **update_data})
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_context=False))

    try:
        await db.registry.save(updated)
    except DuplicateSourceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"Updated source: {feed_id}")
    return updated.model_dump()


@router.delete("/{feed_id}")
async def delete_source(
    feed_id: str,
    db: Database = Depends(get_database)
):
    """Delete a feed. Its stored articles stay until archived."""
    if not await db.registry.delete(feed_id):
        raise HTTPException(status_code=404, detail="Source not found")

    logger.info(f"Deleted source: {feed_id}")
    return {'message': 'Source deleted successfully'}
