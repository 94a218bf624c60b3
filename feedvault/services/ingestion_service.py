"""Ingestion run: fetch all feeds, then gate every article through the dedup index into the hot store"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from feedvault.config import Settings, settings as default_settings
from feedvault.exceptions import PermanentStorageError, StorageError, StoreUnavailableError
from feedvault.models.article import Article
from feedvault.models.results import IngestionSummary, RegisterResult
from feedvault.services.fetch_orchestrator import FetchOrchestrator, summarize_results
from feedvault.storage.dedup_index import DedupIndex
from feedvault.storage.partitioned_store import TimePartitionedStore

logger = logging.getLogger(__name__)


@dataclass
class _FeedTally:
    stored: int = 0
    duplicates: int = 0
    failures: int = 0
    errors: List[str] = field(default_factory=list)


class IngestionService:
    """One ingestion pipeline: registry -> orchestrator -> dedup index -> time-partitioned store"""

    def __init__(
        self,
        registry,
        orchestrator: FetchOrchestrator,
        dedup_index: DedupIndex,
        store: TimePartitionedStore,
        config: Optional[Settings] = None,
    ):
        """
        Initialize ingestion service.

        Args:
            registry: Feed source registry with async list_enabled()
            orchestrator: Fetch orchestrator
            dedup_index: Authoritative dedup index
            store: Hot time-partitioned store
            config: Settings (concurrency, timeouts, deadline)
        """
        self.registry = registry
        self.orchestrator = orchestrator
        self.dedup_index = dedup_index
        self.store = store
        self.config = config or default_settings
        self.last_summary: Optional[IngestionSummary] = None

    async def run(self, deadline: Optional[float] = None) -> IngestionSummary:
        """
        Run one ingestion cycle.

        Feed-level and item-level problems are counted, never raised. An
        unreachable store stops the remaining writes; whatever was stored
        before that is reported.

        Args:
            deadline: Seconds allowed for the fetch stage, defaults to settings.run_deadline_seconds

        Returns:
            IngestionSummary for the run
        """
        started = time.monotonic()
        logger.info("Starting ingestion run...")

        sources = await self.registry.list_enabled()
        results = await self.orchestrator.run(
            sources,
            concurrency_limit=self.config.max_concurrent_feeds,
            per_feed_timeout=self.config.per_feed_timeout_seconds,
            deadline=deadline if deadline is not None else self.config.run_deadline_seconds,
        )
        summary = summarize_results(results)

        abort = asyncio.Event()
        tallies = await asyncio.gather(*(
            self._store_feed(result.articles, abort) for result in results if result.articles
        ))

        for tally in tallies:
            summary.articlesStored += tally.stored
            summary.duplicates += tally.duplicates
            summary.storageFailures += tally.failures
            summary.errors.extend(tally.errors)
        summary.aborted = abort.is_set()
        summary.duration = time.monotonic() - started

        logger.info(
            f"Ingestion complete: {summary.feedsSucceeded}/{summary.feedsAttempted} feeds, "
            f"{summary.itemsFound} items, {summary.articlesStored} stored, {summary.duplicates} duplicates, "
            f"{summary.extractionFailures} without link, {summary.storageFailures} storage failures"
        )
        self.last_summary = summary
        return summary

    async def _store_feed(self, articles: List[Article], abort: asyncio.Event) -> _FeedTally:
        """Items of one feed are written sequentially."""
        tally = _FeedTally()

        for article in articles:
            if abort.is_set():
                break

            try:
                registered = await self.dedup_index.register(
                    article.feedId, article.contentHash, article.location, first_seen_at=article.fetchedAt
                )
            except StoreUnavailableError as e:
                logger.error(f"Dedup index unreachable, stopping writes: {e}")
                tally.errors.append(f"dedup index unavailable: {e}")
                abort.set()
                break
            except PermanentStorageError as e:
                logger.error(f"Dedup registration failed for {article.link}: {e}")
                tally.failures += 1
                tally.errors.append(f"{article.feedId}: {e}")
                continue

            if registered == RegisterResult.ALREADY_EXISTS:
                tally.duplicates += 1
                continue

            try:
                await self.store.put(article)
                tally.stored += 1
            except StoreUnavailableError as e:
                logger.error(f"Store unreachable, stopping writes: {e}")
                tally.errors.append(f"store unavailable: {e}")
                await self._release(article)
                abort.set()
                break
            except PermanentStorageError as e:
                logger.error(f"Error saving article {article.link}: {e}")
                tally.failures += 1
                tally.errors.append(f"{article.feedId}: {e}")
                await self._release(article)

        return tally

    async def _release(self, article: Article):
        try:
            await self.dedup_index.release(article.feedId, article.contentHash)
        except StorageError as e:
            logger.error(f"Could not release dedup entry for {article.link}; it will not be retried: {e}")
