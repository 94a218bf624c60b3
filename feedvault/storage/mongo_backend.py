"""MongoDB storage backend with a partition catalog"""
import functools
from datetime import datetime, timezone
from typing import Iterable, List, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel, ReplaceOne
from pymongo.errors import ConnectionFailure, NetworkTimeout, PyMongoError, WTimeoutError

from feedvault.exceptions import PermanentStorageError, TransientStorageError
from feedvault.storage.backend import Record, StorageBackend

logger = logging.getLogger(__name__)

# AutoReconnect and ServerSelectionTimeoutError are ConnectionFailures
TRANSIENT_ERRORS = (ConnectionFailure, NetworkTimeout, WTimeoutError)

PARTITION_ACTIVE = "active"
PARTITION_DELETING = "deleting"

_NO_ID = {'_id': 0}


def translate_errors(func):
    """Map pymongo errors onto the storage error taxonomy"""
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except TRANSIENT_ERRORS as e:
            raise TransientStorageError(f"{self.name}.{func.__name__}: {e}") from e
        except PyMongoError as e:
            raise PermanentStorageError(f"{self.name}.{func.__name__}: {e}") from e
    return wrapper


class MongoStorageBackend(StorageBackend):
    """Records in one collection, partition states in ``<collection>_partitions``.

    A partition is visible to readers only while its catalog entry is
    ``active``. Deletion flips the entry to ``deleting`` in one atomic update
    before removing records, so readers see either the whole partition or
    none of it.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str):
        """
        Initialize MongoDB backend.

        Args:
            db: MongoDB database instance
            collection_name: Record collection; the catalog collection is derived from it
        """
        self.name = collection_name
        self.collection = db[collection_name]
        self.catalog = db[f"{collection_name}_partitions"]

    @translate_errors
    async def setup(self) -> None:
        await self.collection.create_indexes([
            IndexModel([("partitionKey", ASCENDING), ("sortKey", ASCENDING)], unique=True),
            IndexModel([("feedId", ASCENDING), ("contentHash", ASCENDING)]),
        ])
        await self.catalog.create_indexes([
            IndexModel([("state", ASCENDING)]),
        ])
        logger.info(f"Indexes ready for {self.name}")

    async def _register_partitions(self, partition_keys: Iterable[str]):
        # Runs after the record write so a concurrent deletion can never orphan it
        now = datetime.now(timezone.utc)
        for partition_key in set(partition_keys):
            await self.catalog.update_one(
                {'_id': partition_key},
                {'$setOnInsert': {'state': PARTITION_ACTIVE, 'createdAt': now}},
                upsert=True
            )

    async def _is_visible(self, partition_key: str) -> bool:
        entry = await self.catalog.find_one({'_id': partition_key, 'state': PARTITION_ACTIVE}, {'_id': 1})
        return entry is not None

    @translate_errors
    async def put(self, record: Record) -> None:
        await self.collection.replace_one(
            {'partitionKey': record['partitionKey'], 'sortKey': record['sortKey']},
            dict(record),
            upsert=True
        )
        await self._register_partitions([record['partitionKey']])

    @translate_errors
    async def batch_put(self, records: List[Record]) -> int:
        if not records:
            return 0
        operations = [
            ReplaceOne(
                {'partitionKey': record['partitionKey'], 'sortKey': record['sortKey']},
                dict(record),
                upsert=True
            )
            for record in records
        ]
        result = await self.collection.bulk_write(operations, ordered=False)
        await self._register_partitions(record['partitionKey'] for record in records)
        return result.upserted_count + result.matched_count

    @translate_errors
    async def get(self, partition_key: str, sort_key: str) -> Optional[Record]:
        if not await self._is_visible(partition_key):
            return None
        return await self.collection.find_one({'partitionKey': partition_key, 'sortKey': sort_key}, _NO_ID)

    @translate_errors
    async def query_partition(self, partition_key: str, limit: Optional[int] = None) -> List[Record]:
        if not await self._is_visible(partition_key):
            return []
        cursor = self.collection.find({'partitionKey': partition_key}, _NO_ID).sort('sortKey', ASCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(None)

    @translate_errors
    async def query_range(self, start_key: str, end_key: str) -> List[Record]:
        visible = await self.catalog.find(
            {'_id': {'$gte': start_key, '$lte': end_key}, 'state': PARTITION_ACTIVE},
            {'_id': 1}
        ).to_list(None)
        if not visible:
            return []
        return await self.collection.find(
            {'partitionKey': {'$in': [entry['_id'] for entry in visible]}},
            _NO_ID
        ).sort([('partitionKey', DESCENDING), ('sortKey', ASCENDING)]).to_list(None)

    @translate_errors
    async def delete_partition(self, partition_key: str, sort_keys: Optional[Iterable[str]] = None) -> int:
        marked = await self.catalog.find_one_and_update(
            {'_id': partition_key},
            {'$set': {'state': PARTITION_DELETING, 'deletingSince': datetime.now(timezone.utc)}}
        )
        if marked is None:
            return 0

        query = {'partitionKey': partition_key}
        if sort_keys is not None:
            query['sortKey'] = {'$in': list(sort_keys)}
        result = await self.collection.delete_many(query)

        if await self.collection.count_documents({'partitionKey': partition_key}, limit=1):
            # Records written after the caller's snapshot stay visible
            await self.catalog.update_one(
                {'_id': partition_key},
                {'$set': {'state': PARTITION_ACTIVE}, '$unset': {'deletingSince': ''}}
            )
        else:
            await self.catalog.delete_one({'_id': partition_key, 'state': PARTITION_DELETING})
            if await self.collection.count_documents({'partitionKey': partition_key}, limit=1):
                await self._register_partitions([partition_key])

        logger.debug(f"Deleted {result.deleted_count} records from {self.name}/{partition_key}")
        return result.deleted_count

    @translate_errors
    async def list_partitions(self, before: Optional[str] = None) -> List[str]:
        query = {'_id': {'$lt': before}} if before else {}
        entries = await self.catalog.find(query, {'_id': 1}).sort('_id', ASCENDING).to_list(None)
        return [entry['_id'] for entry in entries]

    @translate_errors
    async def recover_interrupted_deletions(self) -> int:
        result = await self.catalog.update_many(
            {'state': PARTITION_DELETING},
            {'$set': {'state': PARTITION_ACTIVE}, '$unset': {'deletingSince': ''}}
        )
        if result.modified_count:
            logger.warning(f"Recovered {result.modified_count} interrupted partition deletions in {self.name}")
        return result.modified_count
