from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from feedvault.clients.feed_fetcher import FetchOutcome
from feedvault.exceptions import FetchError
from feedvault.models.article import Article
from feedvault.models.source import FeedSource
from feedvault.services.normalizer import partition_key_for, sort_key_for
from feedvault.utils.hash import generate_content_hash

FETCHED_AT = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def rss_document(items: List[Dict[str, str]], title: str = "Example Feed") -> bytes:
    """Minimal RSS 2.0 document; each item dict maps element name -> text"""
    rendered = []
    for item in items:
        fields = "".join(f"<{name}>{value}</{name}>" for name, value in item.items())
        rendered.append(f"<item>{fields}</item>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">'
        f"<channel><title>{title}</title><link>https://example.com</link>"
        f"{''.join(rendered)}</channel></rss>"
    ).encode("utf-8")


class FakeFetcher:
    """Serves canned documents per URL; records the peak number of concurrent fetches"""

    def __init__(self, documents: Optional[Dict[str, bytes]] = None, delays: Optional[Dict[str, float]] = None,
                 errors: Optional[Dict[str, str]] = None):
        self.documents = documents or {}
        self.delays = delays or {}
        self.errors = errors or {}
        self.calls: List[str] = []
        self.in_flight = 0
        self.peak = 0

    async def fetch(self, url: str, timeout: float) -> FetchOutcome:
        self.calls.append(url)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, 0))
            if url in self.errors:
                return FetchOutcome(error=FetchError(url, self.errors[url], status_code=500))
            return FetchOutcome(content=self.documents.get(url, rss_document([])))
        finally:
            self.in_flight -= 1

    async def close(self):
        pass


def make_source(feed_id: str = "example", **overrides) -> FeedSource:
    data = {
        "feedId": feed_id,
        "name": f"{feed_id.title()} News",
        "url": f"https://{feed_id}.example.com/rss",
        "category": "World",
        "country": "GB",
        "priorityTier": 2,
        "enabled": True,
    }
    data.update(overrides)
    return FeedSource(**data)


def make_article(published: datetime, feed_id: str = "example", slug: str = None) -> Article:
    link = f"https://{feed_id}.example.com/{slug or published.isoformat()}"
    content_hash = generate_content_hash(link)
    return Article(
        title=f"Article {slug or published.isoformat()}",
        link=link,
        publishedAt=published,
        fetchedAt=published,
        feedId=feed_id,
        feedName=feed_id.title(),
        contentHash=content_hash,
        partitionKey=partition_key_for(published),
        sortKey=sort_key_for(published, feed_id, content_hash),
    )


@pytest.fixture
def source() -> FeedSource:
    return make_source()
