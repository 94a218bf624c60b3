"""Feed source registry: where the configured feeds come from"""
from typing import Dict, List, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ASCENDING, IndexModel
from pymongo.errors import DuplicateKeyError

from feedvault.exceptions import DuplicateSourceError
from feedvault.models.source import FeedSource

logger = logging.getLogger(__name__)


class StaticFeedSourceRegistry:
    """Fixed list of feeds held in memory"""

    def __init__(self, sources: Optional[List[FeedSource]] = None):
        self._sources: Dict[str, FeedSource] = {source.feedId: source for source in sources or []}

    async def list_enabled(self) -> List[FeedSource]:
        return sorted(
            (source for source in self._sources.values() if source.enabled),
            key=lambda source: (source.priorityTier, source.feedId)
        )

    async def list_all(self) -> List[FeedSource]:
        return sorted(self._sources.values(), key=lambda source: (source.priorityTier, source.feedId))

    async def get(self, feed_id: str) -> Optional[FeedSource]:
        return self._sources.get(feed_id)

    async def find_by_url(self, url: str) -> Optional[FeedSource]:
        return next((source for source in self._sources.values() if source.url == url), None)

    async def save(self, source: FeedSource) -> FeedSource:
        other = await self.find_by_url(source.url)
        if other is not None and other.feedId != source.feedId:
            raise DuplicateSourceError(f"URL already used by feed {other.feedId}")
        self._sources[source.feedId] = source
        return source

    async def delete(self, feed_id: str) -> bool:
        return self._sources.pop(feed_id, None) is not None


class MongoFeedSourceRegistry:
    """Feeds stored one document per feed, keyed by feedId"""

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "feed_sources"):
        """
        Initialize registry.

        Args:
            db: MongoDB database instance
            collection_name: Collection holding FeedSource documents
        """
        self.collection = db[collection_name]

    async def setup(self):
        await self.collection.create_indexes([
            IndexModel([("feedId", ASCENDING)], unique=True),
            IndexModel([("enabled", ASCENDING), ("priorityTier", ASCENDING)]),
            IndexModel([("url", ASCENDING)], unique=True),
        ])

    def _parse(self, doc: Dict) -> Optional[FeedSource]:
        try:
            return FeedSource(**doc)
        except ValidationError as e:
            logger.error(f"Skipping malformed feed source {doc.get('feedId', doc.get('_id'))}: {e}")
            return None

    async def _find(self, query: Dict) -> List[FeedSource]:
        docs = await self.collection.find(query, {'_id': 0})\
            .sort([('priorityTier', ASCENDING), ('feedId', ASCENDING)])\
            .to_list(None)
        return [source for source in map(self._parse, docs) if source is not None]

    async def list_enabled(self) -> List[FeedSource]:
        """Enabled feeds, most important tier first"""
        return await self._find({'enabled': True})

    async def list_all(self) -> List[FeedSource]:
        return await self._find({})

    async def get(self, feed_id: str) -> Optional[FeedSource]:
        doc = await self.collection.find_one({'feedId': feed_id}, {'_id': 0})
        return self._parse(doc) if doc else None

    async def find_by_url(self, url: str) -> Optional[FeedSource]:
        doc = await self.collection.find_one({'url': url}, {'_id': 0})
        return self._parse(doc) if doc else None

    async def save(self, source: FeedSource) -> FeedSource:
        try:
            await self.collection.replace_one(
                {'feedId': source.feedId},
                source.model_dump(exclude_none=True),
                upsert=True
            )
        except DuplicateKeyError as e:
            raise DuplicateSourceError(f"Feed {source.feedId} conflicts with an existing source: {e}") from e
        return source

    async def delete(self, feed_id: str) -> bool:
        result = await self.collection.delete_one({'feedId': feed_id})
        return result.deleted_count > 0
