"""Fetch orchestration: bounded fan-out over feeds, one parse result per feed"""
import asyncio
import time
from typing import List, Optional, Tuple
import logging

from feedvault.clients.feed_fetcher import FetchOutcome
from feedvault.exceptions import FetchError, LinkMissingError
from feedvault.extractors.fields import extract_fields
from feedvault.extractors.policy import PolicyLayer, ResolvedPolicy, resolve_policy
from feedvault.extractors.rss_extractor import RSSExtractor
from feedvault.models.article import Article
from feedvault.models.results import FeedParseResult, IngestionSummary
from feedvault.models.source import FeedSource
from feedvault.services.normalizer import ArticleNormalizer

logger = logging.getLogger(__name__)

DEADLINE_MESSAGE = "Run deadline exceeded"


class FetchOrchestrator:
    """Fetch, parse, extract and normalize many feeds concurrently.

    Each feed holds one of ``concurrency_limit`` slots only while its
    document is being retrieved. Results travel through a single queue and
    statistics are derived from the drained results.
    """

    def __init__(
        self,
        fetcher,
        normalizer: ArticleNormalizer,
        global_defaults: PolicyLayer = None,
        extractor: Optional[RSSExtractor] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            fetcher: Object with async fetch(url, timeout) -> FetchOutcome
            normalizer: Article normalizer (carries the clock)
            global_defaults: Global extraction policy layer
            extractor: Feed document parser
        """
        self.fetcher = fetcher
        self.normalizer = normalizer
        self.global_defaults = global_defaults
        self.extractor = extractor or RSSExtractor()

    async def run(
        self,
        sources: List[FeedSource],
        concurrency_limit: int = 10,
        per_feed_timeout: float = 30.0,
        deadline: Optional[float] = None,
    ) -> List[FeedParseResult]:
        """
        Process every enabled source.

        Args:
            sources: Feeds to process; disabled ones are ignored
            concurrency_limit: Maximum simultaneous fetches
            per_feed_timeout: Seconds allowed for one feed's retrieval
            deadline: Seconds allowed for the whole run; unfinished feeds are
                cancelled and reported as failed

        Returns:
            One FeedParseResult per enabled source, in completion order
        """
        enabled = [source for source in sources if source.enabled]
        if not enabled:
            return []

        semaphore = asyncio.Semaphore(max(1, concurrency_limit))
        results: asyncio.Queue = asyncio.Queue()

        tasks = {}
        for index, source in enumerate(enabled):
            policy = resolve_policy(source.extractionPolicy, self.global_defaults)
            task = asyncio.create_task(
                self._process_feed(index, source, policy, semaphore, per_feed_timeout, results),
                name=f"feed:{source.feedId}"
            )
            tasks[task] = index

        _, pending = await asyncio.wait(list(tasks), timeout=deadline)
        if pending:
            logger.warning(f"Run deadline reached, cancelling {len(pending)} unfinished feeds")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        collected: List[FeedParseResult] = []
        reported = set()
        while not results.empty():
            index, result = results.get_nowait()
            reported.add(index)
            collected.append(result)

        for index, source in enumerate(enabled):
            if index not in reported:
                collected.append(FeedParseResult(
                    feed=source,
                    success=False,
                    errorMessage=DEADLINE_MESSAGE,
                    duration=deadline or 0.0,
                ))

        return collected

    async def _process_feed(
        self,
        index: int,
        source: FeedSource,
        policy: ResolvedPolicy,
        semaphore: asyncio.Semaphore,
        per_feed_timeout: float,
        results: asyncio.Queue,
    ):
        started = time.monotonic()
        try:
            async with semaphore:
                outcome = await self._fetch(source, per_feed_timeout)

            if not outcome.ok:
                raise outcome.error

            content = outcome.content or b""
            articles, items_found, failures = self._extract(content, source, policy)
            result = FeedParseResult(
                feed=source,
                articles=articles,
                success=True,
                itemsFound=items_found,
                extractionFailures=failures,
            )
            logger.info(f"Parsed {len(articles)} articles from {source.name} ({failures} without link)")

        except FetchError as e:
            logger.warning(f"Feed {source.name} failed: {e}")
            result = FeedParseResult(feed=source, success=False, errorMessage=str(e))

        except Exception as e:
            # Feed-level problems never escape the run
            logger.error(f"Unexpected error processing feed {source.name}: {e}", exc_info=True)
            result = FeedParseResult(feed=source, success=False, errorMessage=f"{type(e).__name__}: {e}")

        result.duration = time.monotonic() - started
        await results.put((index, result))

    async def _fetch(self, source: FeedSource, per_feed_timeout: float) -> FetchOutcome:
        try:
            return await asyncio.wait_for(self.fetcher.fetch(source.url, per_feed_timeout), timeout=per_feed_timeout)
        except asyncio.TimeoutError:
            return FetchOutcome(error=FetchError(source.url, f"Timed out after {per_feed_timeout}s"))

    def _extract(self, content: bytes, source: FeedSource, policy: ResolvedPolicy) -> Tuple[List[Article], int, int]:
        """Items keep their document order through extraction."""
        items = self.extractor.extract_items(content, source)
        articles = []
        failures = 0
        for item in items:
            fields = extract_fields(item, policy, source)
            try:
                articles.append(self.normalizer.map(item, fields, source))
            except LinkMissingError as e:
                failures += 1
                logger.debug(f"Skipping item: {e}")
        return articles, len(items), failures


def summarize_results(results: List[FeedParseResult]) -> IngestionSummary:
    """Fetch-stage statistics for a finished orchestrator run"""
    summary = IngestionSummary(feedsAttempted=len(results))
    for result in results:
        if result.success:
            summary.feedsSucceeded += 1
        else:
            summary.feedsFailed += 1
            summary.errors.append(f"{result.feed.feedId}: {result.errorMessage}")
            if result.errorMessage == DEADLINE_MESSAGE:
                summary.deadlineExceeded = True
        summary.itemsFound += result.itemsFound
        summary.extractionFailures += result.extractionFailures
    return summary
