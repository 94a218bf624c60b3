"""Storage connection and service wiring"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
import logging

from feedvault.clients.feed_fetcher import FeedFetcher
from feedvault.config import settings
from feedvault.models.article import Article, ArchivalRecord
from feedvault.services.archival_service import ArchivalMigrator
from feedvault.services.fetch_orchestrator import FetchOrchestrator
from feedvault.services.ingestion_service import IngestionService
from feedvault.services.normalizer import ArticleNormalizer
from feedvault.services.source_registry import MongoFeedSourceRegistry, StaticFeedSourceRegistry
from feedvault.storage.dedup_index import InMemoryDedupIndex, MongoDedupIndex
from feedvault.storage.memory_backend import InMemoryStorageBackend
from feedvault.storage.mongo_backend import MongoStorageBackend
from feedvault.storage.partitioned_store import TieredArticleReader, TimePartitionedStore
from feedvault.storage.retry import StorageRetry
from feedvault.utils.clock import SystemClock

logger = logging.getLogger(__name__)


class Database:
    """Owns the MongoDB connection and the stores and services built on it"""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()
        self.registry = None
        self.dedup_index = None
        self.hot_store: Optional[TimePartitionedStore] = None
        self.cold_store: Optional[TimePartitionedStore] = None
        self.reader: Optional[TieredArticleReader] = None
        self.fetcher: Optional[FeedFetcher] = None
        self.ingestion: Optional[IngestionService] = None
        self.archival: Optional[ArchivalMigrator] = None

    async def connect(self):
        """Connect to storage, set up indexes and build the services"""
        retry = StorageRetry(settings.storage_retry_attempts, settings.storage_retry_wait_seconds)

        if settings.storage_mode == "memory":
            hot_backend = InMemoryStorageBackend(settings.hot_collection)
            cold_backend = InMemoryStorageBackend(settings.cold_collection)
            self.dedup_index = InMemoryDedupIndex(retry)
            self.registry = StaticFeedSourceRegistry()
            logger.info("Storage mode 'memory': nothing will be persisted")
        else:
            try:
                self.client = AsyncIOMotorClient(settings.mongodb_url, tz_aware=True)
                self.db = self.client[settings.database_name]

                # Test connection
                await self.client.admin.command('ping')
                logger.info(f"Connected to MongoDB: {settings.database_name}")

            except Exception as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

            hot_backend = MongoStorageBackend(self.db, settings.hot_collection)
            cold_backend = MongoStorageBackend(self.db, settings.cold_collection)
            self.dedup_index = MongoDedupIndex(self.db, settings.dedup_collection, retry)
            self.registry = MongoFeedSourceRegistry(self.db, settings.sources_collection)

            await hot_backend.setup()
            await cold_backend.setup()
            await self.dedup_index.setup()
            await self.registry.setup()
            logger.info("Database indexes created successfully")

        self.wire(hot_backend, cold_backend, self.dedup_index, self.registry, retry)

    def wire(self, hot_backend, cold_backend, dedup_index, registry, retry: StorageRetry, fetcher=None):
        """Build the stores and services on top of the given backends"""
        self.dedup_index = dedup_index
        self.registry = registry
        self.hot_store = TimePartitionedStore(hot_backend, retry, Article)
        self.cold_store = TimePartitionedStore(cold_backend, retry, ArchivalRecord)
        self.reader = TieredArticleReader(self.hot_store, self.cold_store)

        self.fetcher = fetcher or FeedFetcher()
        orchestrator = FetchOrchestrator(
            self.fetcher,
            ArticleNormalizer(self.clock),
            global_defaults=settings.default_extraction_policy(),
        )
        self.ingestion = IngestionService(self.registry, orchestrator, self.dedup_index, self.hot_store, settings)
        self.archival = ArchivalMigrator(self.hot_store, self.cold_store, self.clock)

    async def disconnect(self):
        """Close HTTP and MongoDB connections"""
        if self.fetcher:
            await self.fetcher.close()
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")


# Global database instance
database = Database()


async def get_database() -> Database:
    """Dependency for FastAPI routes to get the storage and services"""
    return database
