"""Deduplication index: (feedId, contentHash) -> storage location, the single write gate"""
import asyncio
import functools
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, IndexModel
from pymongo.errors import DuplicateKeyError, PyMongoError

from feedvault.exceptions import PermanentStorageError, TransientStorageError
from feedvault.models.article import DedupEntry, StorageLocation
from feedvault.models.results import RegisterResult
from feedvault.storage.mongo_backend import TRANSIENT_ERRORS
from feedvault.storage.retry import StorageRetry

logger = logging.getLogger(__name__)


class DedupIndex(ABC):
    """Authoritative existence map. Only register() returning INSERTED grants a store write."""

    def __init__(self, retry: Optional[StorageRetry] = None):
        self.retry = retry or StorageRetry()

    @abstractmethod
    async def _find(self, feed_id: str, content_hash: str) -> Optional[DedupEntry]:
        pass

    @abstractmethod
    async def _insert(self, entry: DedupEntry, claim: str) -> RegisterResult:
        pass

    @abstractmethod
    async def _delete(self, feed_id: str, content_hash: str) -> None:
        pass

    async def exists(self, feed_id: str, content_hash: str) -> bool:
        return await self.lookup(feed_id, content_hash) is not None

    async def lookup(self, feed_id: str, content_hash: str) -> Optional[DedupEntry]:
        """Entry for an ingested article, or None"""
        return await self.retry.call(self._find, feed_id, content_hash)

    async def register(
        self,
        feed_id: str,
        content_hash: str,
        location: StorageLocation,
        first_seen_at: Optional[datetime] = None,
    ) -> RegisterResult:
        """
        Atomically claim (feed_id, content_hash).

        Args:
            feed_id: Feed the article belongs to
            content_hash: Hash of the article's normalized link
            location: Where the article will be written
            first_seen_at: Defaults to now

        Returns:
            RegisterResult.INSERTED when this call created the entry,
            RegisterResult.ALREADY_EXISTS when any earlier caller did
        """
        entry = DedupEntry(
            feedId=feed_id,
            contentHash=content_hash,
            partitionKey=location.partitionKey,
            sortKey=location.sortKey,
            firstSeenAt=first_seen_at or datetime.now(timezone.utc),
        )
        # The claim token tells a retried insert apart from a genuine duplicate
        claim = uuid.uuid4().hex
        return await self.retry.call(self._insert, entry, claim)

    async def release(self, feed_id: str, content_hash: str) -> None:
        """Drop an entry whose store write failed permanently so a later run can retry it"""
        await self.retry.call(self._delete, feed_id, content_hash)
        logger.debug(f"Released dedup entry {feed_id}/{content_hash[:12]}")


class InMemoryDedupIndex(DedupIndex):
    """Dict-backed index for STORAGE_MODE=memory and tests"""

    def __init__(self, retry: Optional[StorageRetry] = None):
        super().__init__(retry)
        self._entries: Dict[Tuple[str, str], DedupEntry] = {}
        self._lock = asyncio.Lock()

    async def _find(self, feed_id: str, content_hash: str) -> Optional[DedupEntry]:
        return self._entries.get((feed_id, content_hash))

    async def _insert(self, entry: DedupEntry, claim: str) -> RegisterResult:
        key = (entry.feedId, entry.contentHash)
        async with self._lock:
            if key in self._entries:
                return RegisterResult.ALREADY_EXISTS
            self._entries[key] = entry
            return RegisterResult.INSERTED

    async def _delete(self, feed_id: str, content_hash: str) -> None:
        async with self._lock:
            self._entries.pop((feed_id, content_hash), None)

    def __len__(self):
        return len(self._entries)


def _translate_errors(func):
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except TRANSIENT_ERRORS as e:
            raise TransientStorageError(f"dedup.{func.__name__}: {e}") from e
        except PyMongoError as e:
            raise PermanentStorageError(f"dedup.{func.__name__}: {e}") from e
    return wrapper


class MongoDedupIndex(DedupIndex):
    """Unique (feedId, contentHash) index; insert_one is the atomic test-and-set"""

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "dedup_index",
                 retry: Optional[StorageRetry] = None):
        super().__init__(retry)
        self.collection = db[collection_name]

    @_translate_errors
    async def setup(self):
        await self.collection.create_indexes([
            IndexModel([("feedId", ASCENDING), ("contentHash", ASCENDING)], unique=True),
            IndexModel([("firstSeenAt", ASCENDING)]),
        ])

    @_translate_errors
    async def _find(self, feed_id: str, content_hash: str) -> Optional[DedupEntry]:
        doc = await self.collection.find_one({'feedId': feed_id, 'contentHash': content_hash}, {'_id': 0})
        return DedupEntry(**doc) if doc else None

    @_translate_errors
    async def _insert(self, entry: DedupEntry, claim: str) -> RegisterResult:
        doc = entry.model_dump()
        doc['claim'] = claim
        try:
            await self.collection.insert_one(doc)
            return RegisterResult.INSERTED
        except DuplicateKeyError:
            existing = await self.collection.find_one(
                {'feedId': entry.feedId, 'contentHash': entry.contentHash},
                {'claim': 1}
            )
            if existing and existing.get('claim') == claim:
                # Our own earlier attempt landed before the connection dropped
                return RegisterResult.INSERTED
            logger.debug(f"Duplicate article detected: {entry.feedId}/{entry.contentHash[:12]}")
            return RegisterResult.ALREADY_EXISTS

    @_translate_errors
    async def _delete(self, feed_id: str, content_hash: str) -> None:
        await self.collection.delete_one({'feedId': feed_id, 'contentHash': content_hash})
