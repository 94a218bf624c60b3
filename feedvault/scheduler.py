"""APScheduler configuration for periodic ingestion and archival"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
import logging

from feedvault.config import settings
from feedvault.database import database
from feedvault.exceptions import SweepInProgressError

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone="UTC")


async def scheduled_ingestion():
    """
    Periodic task collecting every enabled feed.
    Runs based on INGESTION_INTERVAL_MINUTES configuration.

    Protected by APScheduler's max_instances=1 to prevent overlapping runs.
    """
    try:
        summary = await database.ingestion.run()
        logger.info(f"Scheduled ingestion complete: {summary.model_dump(exclude={'errors'})}")
        for error in summary.errors:
            logger.warning(f"Ingestion error: {error}")
    except Exception as e:
        logger.error(f"Error in scheduled ingestion: {e}", exc_info=True)


async def scheduled_archival():
    """
    Daily sweep moving partitions past RETENTION_DAYS to cold storage.
    Runs at ARCHIVAL_HOUR_UTC.
    """
    try:
        result = await database.archival.sweep(settings.retention_days)
        logger.info(f"Scheduled archival complete: {result.model_dump()}")
    except SweepInProgressError as e:
        logger.warning(f"Scheduled archival skipped: {e}")
    except Exception as e:
        logger.error(f"Error in scheduled archival: {e}", exc_info=True)


def setup_scheduler():
    """Register the ingestion and archival jobs"""

    scheduler.add_job(
        scheduled_ingestion,
        trigger=IntervalTrigger(minutes=settings.ingestion_interval_minutes),
        id='ingest_feeds',
        name='Collect all enabled feeds',
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )

    scheduler.add_job(
        scheduled_archival,
        trigger=CronTrigger(hour=settings.archival_hour_utc, minute=0, timezone="UTC"),
        id='archive_partitions',
        name='Move expired partitions to cold storage',
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )

    logger.info(
        f"Scheduler configured: ingestion every {settings.ingestion_interval_minutes} minutes, "
        f"archival daily at {settings.archival_hour_utc:02d}:00 UTC (retention {settings.retention_days} days)"
    )


def start_scheduler():
    """Start the scheduler"""
    try:
        scheduler.start()
        logger.info("Scheduler started successfully")
    except Exception as e:
        logger.error(f"Error starting scheduler: {e}")
        raise


def shutdown_scheduler():
    """Shutdown the scheduler gracefully"""
    try:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler shutdown complete")
    except Exception as e:
        logger.error(f"Error shutting down scheduler: {e}")
