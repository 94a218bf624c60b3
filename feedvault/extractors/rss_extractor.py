"""Syndication feed parsing: raw bytes -> RawFeedItem list (RSS 0.9x/1.0/2.0, Atom)"""
import feedparser
from typing import Any, Dict, List
import logging

from feedvault.exceptions import FetchError
from feedvault.models.article import RawFeedItem
from feedvault.models.source import FeedSource

logger = logging.getLogger(__name__)


def _dicts(value: Any) -> List[Dict[str, Any]]:
    if isinstance(value, dict):
        return [value]
    if isinstance(value, (list, tuple)):
        return [element for element in value if isinstance(element, dict)]
    return []


def _string(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def entry_to_raw_item(entry: Dict[str, Any]) -> RawFeedItem:
    """
    Map one feedparser entry onto a RawFeedItem.

    Args:
        entry: feedparser entry (a dict subclass)

    Returns:
        RawFeedItem with every block the entry carries
    """
    content_blocks = [
        block.get('value', '') for block in _dicts(entry.get('content'))
        if isinstance(block.get('value'), str) and block.get('value').strip()
    ]

    enclosures = _dicts(entry.get('enclosures'))
    if not enclosures:
        # Some feeds only expose enclosures through rel="enclosure" links
        enclosures = [link for link in _dicts(entry.get('links')) if link.get('rel') == 'enclosure']

    categories = [
        tag.get('term') or tag.get('label') for tag in _dicts(entry.get('tags'))
        if isinstance(tag.get('term') or tag.get('label'), str)
    ]

    return RawFeedItem(
        title=_string(entry.get('title')),
        link=_string(entry.get('link')),
        description=_string(entry.get('description')),
        summary=_string(entry.get('summary')),
        content=content_blocks,
        published=_string(entry.get('published') or entry.get('updated') or entry.get('created')),
        publishedParsed=(
            entry.get('published_parsed') or entry.get('updated_parsed') or entry.get('created_parsed')
        ),
        author=_string(entry.get('author')),
        authorDetail=entry.get('author_detail') if isinstance(entry.get('author_detail'), dict) else {},
        enclosures=enclosures,
        mediaThumbnails=_dicts(entry.get('media_thumbnail')),
        mediaContent=_dicts(entry.get('media_content')),
        categories=categories,
        extras=dict(entry),
    )


class RSSExtractor:
    """Parse syndication documents into RawFeedItems, preserving source order"""

    def extract_items(self, content: bytes, source: FeedSource) -> List[RawFeedItem]:
        """
        Parse a fetched feed document.

        Args:
            content: Raw feed bytes as returned by the fetcher
            source: Feed the document belongs to (for error reporting)

        Returns:
            Raw items in document order

        Raises:
            FetchError: The document is not a recognizable feed
        """
        feed = feedparser.parse(content)

        if feed.bozo:
            if not feed.entries:
                raise FetchError(source.url, f"Malformed feed document: {feed.get('bozo_exception')}")
            logger.warning(f"RSS feed parsing warning for {source.name}: {feed.get('bozo_exception')}")

        if not feed.entries and not feed.get('version') and not feed.feed:
            raise FetchError(source.url, "Response is not a syndication feed")

        return [entry_to_raw_item(entry) for entry in feed.entries]
