"""Manual triggers for the ingestion run and the archival sweep"""
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional

from feedvault.config import settings
from feedvault.database import Database, get_database
from feedvault.exceptions import SweepInProgressError
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("/ingest")
async def run_ingestion(
    deadline: Optional[float] = Query(None, gt=0, description="Seconds allowed for the fetch stage"),
    db: Database = Depends(get_database)
):
    """Collect every enabled feed now"""
    logger.info("Manual ingestion triggered")
    summary = await db.ingestion.run(deadline=deadline)
    return summary.model_dump()


@router.post("/archive")
async def run_archival(
    retentionDays: Optional[int] = Query(None, ge=1, description="Defaults to RETENTION_DAYS"),
    db: Database = Depends(get_database)
):
    """Move partitions past the retention window to cold storage now"""
    logger.info("Manual archival sweep triggered")
    try:
        result = await db.archival.sweep(retentionDays or settings.retention_days)
    except SweepInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return result.model_dump(mode='json')
