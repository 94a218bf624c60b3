"""Article normalization: raw item + extracted fields + feed metadata -> canonical Article"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlparse
import logging

from feedvault.exceptions import LinkMissingError
from feedvault.extractors.fields import strip_html
from feedvault.models.article import Article, ExtractedFields, RawFeedItem
from feedvault.models.source import FeedSource
from feedvault.utils.hash import generate_content_hash

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Publication dates outside [MIN_PUBLISHED_AT, fetchedAt + MAX_FUTURE_SKEW] fall back to fetchedAt
MIN_PUBLISHED_AT = datetime(1995, 1, 1, tzinfo=timezone.utc)
MAX_FUTURE_SKEW = timedelta(hours=24)

# Inverted epoch millis are zero-padded to this width (covers dates up to year 2286)
SORT_KEY_DIGITS = 13
SORT_KEY_CEILING = 10 ** SORT_KEY_DIGITS
SORT_KEY_SEPARATOR = "#"


def partition_key_for(instant: datetime) -> str:
    """UTC calendar date of an instant, YYYY-MM-DD"""
    return instant.astimezone(timezone.utc).date().isoformat()


def sort_key_for(instant: datetime, feed_id: str, content_hash: str) -> str:
    """
    Build the within-partition sort key.

    Ascending lexicographic order of the key is descending publication time;
    equal times are ordered by feed id, then content hash, both ascending.
    """
    millis = (instant.astimezone(timezone.utc) - EPOCH) // timedelta(milliseconds=1)
    inverted = SORT_KEY_CEILING - 1 - millis
    return f"{inverted:0{SORT_KEY_DIGITS}d}{SORT_KEY_SEPARATOR}{feed_id}{SORT_KEY_SEPARATOR}{content_hash}"


def is_usable_link(link: str) -> bool:
    if not link:
        return False
    try:
        parsed = urlparse(link)
    except ValueError:
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


class ArticleNormalizer:
    """Map extracted items onto canonical Articles. Pure apart from the injected clock."""

    def __init__(self, clock):
        """
        Initialize article normalizer.

        Args:
            clock: Object with now() -> aware UTC datetime
        """
        self.clock = clock

    def _effective_published_at(self, published_at: Optional[datetime], fetched_at: datetime) -> Optional[datetime]:
        if published_at is None:
            return None
        if published_at.tzinfo is None:
            published_at = published_at.replace(tzinfo=timezone.utc)
        if published_at < MIN_PUBLISHED_AT or published_at > fetched_at + MAX_FUTURE_SKEW:
            logger.debug(f"Publication date {published_at.isoformat()} out of range, using fetch time")
            return None
        return published_at

    def map(self, raw_item: RawFeedItem, fields: ExtractedFields, feed: FeedSource) -> Article:
        """
        Build the canonical Article for one feed item.

        Args:
            raw_item: Item as parsed from the feed
            fields: Field extractor output for the item
            feed: Feed the item came from

        Returns:
            Article with contentHash, partitionKey and sortKey computed

        Raises:
            LinkMissingError: Item has no absolute http(s) link
        """
        link = (raw_item.link or '').strip()
        if not is_usable_link(link):
            raise LinkMissingError(f"Item {raw_item.title[:50]!r} from {feed.feedId} has no usable link")

        fetched_at = self.clock.now()
        published_at = self._effective_published_at(fields.publishedAt, fetched_at)
        estimated = published_at is None
        if estimated:
            published_at = fetched_at

        content_hash = generate_content_hash(link)

        return Article(
            title=strip_html(raw_item.title) or link,
            link=link,
            description=fields.description,
            publishedAt=published_at,
            publishedAtEstimated=estimated,
            fetchedAt=fetched_at,
            feedId=feed.feedId,
            feedName=feed.name,
            author=fields.author,
            category=feed.category,
            country=feed.country,
            priorityTier=feed.priorityTier,
            imageUrl=fields.image or None,
            contentHash=content_hash,
            tags=fields.categories,
            partitionKey=partition_key_for(published_at),
            sortKey=sort_key_for(published_at, feed.feedId, content_hash),
        )
