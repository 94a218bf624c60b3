"""Statistics API endpoints"""
from fastapi import APIRouter, HTTPException, Depends

from feedvault.config import settings
from feedvault.database import Database, get_database
from feedvault.exceptions import StorageError
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/stats", tags=["statistics"])


@router.get("")
async def get_statistics(
    db: Database = Depends(get_database)
):
    """Partition counts per tier, archival state and the latest run results"""
    try:
        hot_partitions = await db.hot_store.list_partitions()
        cold_partitions = await db.cold_store.list_partitions()
    except StorageError as e:
        logger.error(f"Error getting statistics: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    last_ingestion = db.ingestion.last_summary
    last_archival = db.archival.last_result

    return {
        'hot': {
            'partitions': len(hot_partitions),
            'oldest': hot_partitions[0] if hot_partitions else None,
            'newest': hot_partitions[-1] if hot_partitions else None,
        },
        'cold': {
            'partitions': len(cold_partitions),
            'oldest': cold_partitions[0] if cold_partitions else None,
            'newest': cold_partitions[-1] if cold_partitions else None,
        },
        'retentionDays': settings.retention_days,
        'archivalState': db.archival.state.value,
        'archivingPartition': db.archival.current_partition,
        'lastIngestion': last_ingestion.model_dump() if last_ingestion else None,
        'lastArchival': last_archival.model_dump(mode='json') if last_archival else None,
    }
