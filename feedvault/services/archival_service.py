"""Archival sweep: move partitions past the retention window from the hot store to the cold store"""
import time
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
import logging

from feedvault.exceptions import (
    ArchivalPartialFailure,
    PermanentStorageError,
    StoreUnavailableError,
    SweepInProgressError,
)
from feedvault.models.article import ArchivalRecord
from feedvault.models.results import ArchivalResult, ArchivalState
from feedvault.storage.partitioned_store import TimePartitionedStore

logger = logging.getLogger(__name__)


class ArchivalMigrator:
    """Copy-verify-delete migration of whole date partitions.

    Copying is an upsert keyed by (partitionKey, sortKey), so a partition
    whose copy failed part way is simply copied again on the next sweep.
    Hot entries are deleted only after every copied entry has been read
    back from cold storage.
    """

    def __init__(self, hot: TimePartitionedStore, cold: TimePartitionedStore, clock):
        """
        Initialize migrator.

        Args:
            hot: Store holding the retention window
            cold: Store receiving ArchivalRecords
            clock: Object with now() -> aware UTC datetime
        """
        self.hot = hot
        self.cold = cold
        self.clock = clock
        self.state = ArchivalState.IDLE
        self.current_partition: Optional[str] = None
        self.last_result: Optional[ArchivalResult] = None

    @staticmethod
    def first_retained_date(now: datetime, retention_days: int):
        """Oldest partition date kept hot: the last retention_days calendar days, today included"""
        today = now.astimezone(timezone.utc).date()
        return today - timedelta(days=max(retention_days, 1) - 1)

    async def sweep(self, retention_days: int, now: Optional[datetime] = None) -> ArchivalResult:
        """
        Archive every hot partition older than the retention window.

        Args:
            retention_days: Calendar days (today included) that stay hot
            now: Reference instant, defaults to the clock

        Returns:
            ArchivalResult; partitions that failed are listed in errors and
            stay hot for the next sweep

        Raises:
            SweepInProgressError: Another sweep holds this hot store
        """
        lock = self.hot.archival_lock
        if lock.locked():
            raise SweepInProgressError(f"Archival sweep already running on {self.hot.name}")

        async with lock:
            started = time.monotonic()
            now = now or self.clock.now()
            if now.tzinfo is None:
                now = now.replace(tzinfo=timezone.utc)
            cutoff = self.first_retained_date(now, retention_days)
            result = ArchivalResult(cutoff=cutoff)

            logger.info(f"Starting archival sweep of {self.hot.name}, keeping partitions from {cutoff}")

            try:
                self.state = ArchivalState.SCANNING
                await self.hot.recover_interrupted_deletions()
                partitions = await self.hot.list_partitions(before=cutoff)
                logger.info(f"Found {len(partitions)} partitions to archive")

                for partition_key in partitions:
                    self.state = ArchivalState.MIGRATING
                    self.current_partition = partition_key
                    try:
                        archived, deleted = await self._migrate_partition(partition_key, now)
                    except (ArchivalPartialFailure, PermanentStorageError) as e:
                        logger.warning(f"Partition left in hot storage: {e}")
                        result.errors.append(str(e))
                        continue

                    result.partitionsProcessed += 1
                    result.articlesArchived += archived
                    result.articlesDeleted += deleted

            except StoreUnavailableError as e:
                logger.error(f"Archival sweep stopped, storage unreachable: {e}")
                result.errors.append(f"storage unavailable: {e}")

            finally:
                self.state = ArchivalState.IDLE
                self.current_partition = None

            result.duration = time.monotonic() - started
            logger.info(
                f"Archival sweep complete: {result.partitionsProcessed} partitions, "
                f"{result.articlesArchived} archived, {result.articlesDeleted} deleted, {len(result.errors)} errors"
            )
            self.last_result = result
            return result

    async def _migrate_partition(self, partition_key: str, now: datetime) -> Tuple[int, int]:
        articles = await self.hot.get_partition(partition_key)
        if not articles:
            return 0, await self.hot.delete_partition(partition_key)

        records = [ArchivalRecord.from_article(article, now) for article in articles]
        try:
            await self.cold.put_many(records)
        except PermanentStorageError as e:
            raise ArchivalPartialFailure(partition_key, f"copy failed: {e}") from e

        try:
            copied = {record.sortKey for record in await self.cold.get_partition(partition_key)}
        except PermanentStorageError as e:
            raise ArchivalPartialFailure(partition_key, f"copy could not be verified: {e}") from e

        missing = sum(1 for article in articles if article.sortKey not in copied)
        if missing:
            raise ArchivalPartialFailure(
                partition_key, f"{missing} of {len(articles)} articles missing from cold storage"
            )

        # Only the verified snapshot is removed; articles inserted meanwhile wait for the next sweep
        deleted = await self.hot.delete_partition(partition_key, sort_keys=[article.sortKey for article in articles])
        logger.info(f"Archived {len(records)} articles from partition {partition_key}")
        return len(records), deleted
