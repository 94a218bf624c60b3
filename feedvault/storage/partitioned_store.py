"""Time-partitioned article store: date partitions, newest-first within and across them"""
import asyncio
import heapq
from datetime import date, datetime
from itertools import groupby
from typing import Iterable, List, Optional, Type, Union
import logging

from feedvault.models.article import Article, StorageLocation
from feedvault.storage.backend import StorageBackend
from feedvault.storage.retry import StorageRetry

logger = logging.getLogger(__name__)

PartitionDate = Union[date, str]


def _partition_key(value: PartitionDate) -> str:
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(value).isoformat()


def _by_sort_key(record):
    return record['sortKey']


class TimePartitionedStore:
    """Articles grouped by UTC publication date, ordered newest first by sortKey.

    Every backend call goes through the retry policy; exhausted transient
    retries surface as StoreUnavailableError, permanent failures as
    PermanentStorageError.
    """

    def __init__(self, backend: StorageBackend, retry: Optional[StorageRetry] = None,
                 record_type: Type[Article] = Article):
        """
        Initialize store.

        Args:
            backend: Hot or cold storage backend
            retry: Retry policy for transient backend errors
            record_type: Article for the hot store, ArchivalRecord for the cold store
        """
        self.backend = backend
        self.retry = retry or StorageRetry()
        self.record_type = record_type
        # Held by the archival migrator for the duration of a sweep
        self.archival_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.backend.name

    def _to_model(self, record) -> Article:
        return self.record_type(**record)

    async def put(self, article: Article) -> None:
        await self.retry.call(self.backend.put, article.model_dump())

    async def put_many(self, articles: List[Article]) -> int:
        if not articles:
            return 0
        return await self.retry.call(self.backend.batch_put, [article.model_dump() for article in articles])

    async def get(self, location: StorageLocation) -> Optional[Article]:
        record = await self.retry.call(self.backend.get, location.partitionKey, location.sortKey)
        return self._to_model(record) if record else None

    async def get_partition(self, partition: PartitionDate, limit: Optional[int] = None) -> List[Article]:
        """Articles of one day, newest first"""
        records = await self.retry.call(self.backend.query_partition, _partition_key(partition), limit)
        return [self._to_model(record) for record in records]

    async def get_range(self, start: PartitionDate, end: PartitionDate) -> List[Article]:
        """
        Articles of every day in [start, end], newest first.

        Partitions are merged by sortKey rather than concatenated, so an
        article filed under the fetch-time fallback date still lands in
        publication order.
        """
        start_key, end_key = _partition_key(start), _partition_key(end)
        if start_key > end_key:
            start_key, end_key = end_key, start_key
        records = await self.retry.call(self.backend.query_range, start_key, end_key)
        partitions = [
            sorted(group, key=_by_sort_key)
            for _, group in groupby(records, key=lambda record: record['partitionKey'])
        ]
        return [self._to_model(record) for record in heapq.merge(*partitions, key=_by_sort_key)]

    async def delete_partition(self, partition: PartitionDate, sort_keys: Optional[Iterable[str]] = None) -> int:
        """Remove a partition (or only the given entries of it) all at once"""
        partition_key = _partition_key(partition)
        if sort_keys is not None:
            sort_keys = list(sort_keys)
        deleted = await self.retry.call(self.backend.delete_partition, partition_key, sort_keys)
        logger.info(f"Deleted {deleted} articles from {self.name}/{partition_key}")
        return deleted

    async def list_partitions(self, before: Optional[PartitionDate] = None) -> List[str]:
        before_key = _partition_key(before) if before is not None else None
        return await self.retry.call(self.backend.list_partitions, before_key)

    async def recover_interrupted_deletions(self) -> int:
        return await self.retry.call(self.backend.recover_interrupted_deletions)


def merge_newest_first(*article_lists: List[Article]) -> List[Article]:
    """Merge lists already ordered newest first into one such list"""
    return list(heapq.merge(*article_lists, key=lambda article: article.sortKey))


class TieredArticleReader:
    """Reads across the hot and cold stores through the same query contract"""

    def __init__(self, hot: TimePartitionedStore, cold: TimePartitionedStore):
        self.hot = hot
        self.cold = cold

    async def get(self, location: StorageLocation) -> Optional[Article]:
        article = await self.hot.get(location)
        if article is None:
            article = await self.cold.get(location)
        return article

    async def get_partition(self, partition: PartitionDate, limit: Optional[int] = None) -> List[Article]:
        merged = merge_newest_first(
            await self.hot.get_partition(partition, limit),
            await self.cold.get_partition(partition, limit),
        )
        # An article caught mid-migration can be in both tiers
        unique = [next(group) for _, group in groupby(merged, key=lambda article: article.sortKey)]
        return unique[:limit] if limit else unique

    async def get_range(self, start: PartitionDate, end: PartitionDate) -> List[Article]:
        merged = merge_newest_first(await self.hot.get_range(start, end), await self.cold.get_range(start, end))
        return [next(group) for _, group in groupby(merged, key=lambda article: article.sortKey)]
