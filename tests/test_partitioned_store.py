from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import List

import pytest

from feedvault.exceptions import PermanentStorageError, StoreUnavailableError, TransientStorageError
from feedvault.models.article import ArchivalRecord, Article
from feedvault.storage.memory_backend import InMemoryStorageBackend
from feedvault.storage.partitioned_store import TieredArticleReader, TimePartitionedStore
from feedvault.storage.retry import StorageRetry

from conftest import make_article

NO_WAIT = StorageRetry(attempts=3, wait_seconds=0)


class FlakyBackend(InMemoryStorageBackend):
    """Fails the first `failures` calls of put() with the given error"""

    def __init__(self, failures: int, error=TransientStorageError):
        super().__init__("flaky")
        self.failures = failures
        self.error = error
        self.put_calls = 0

    async def put(self, record):
        self.put_calls += 1
        if self.put_calls <= self.failures:
            raise self.error("connection reset")
        await super().put(record)


def _store(backend=None, record_type=Article) -> TimePartitionedStore:
    return TimePartitionedStore(backend or InMemoryStorageBackend(), NO_WAIT, record_type)


def _titles(articles: List[Article]) -> List[str]:
    return [article.title for article in articles]


@pytest.mark.asyncio
async def test_partition_is_newest_first():
    store = _store()
    base = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)
    for hours in (0, 5, 2):
        await store.put(make_article(base + timedelta(hours=hours), slug=f"h{hours}"))

    articles = await store.get_partition(date(2026, 3, 10))

    assert _titles(articles) == ["Article h5", "Article h2", "Article h0"]


@pytest.mark.asyncio
async def test_partition_limit_keeps_newest():
    store = _store()
    base = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)
    for minutes in range(5):
        await store.put(make_article(base + timedelta(minutes=minutes), slug=f"m{minutes}"))

    articles = await store.get_partition("2026-03-10", limit=2)

    assert _titles(articles) == ["Article m4", "Article m3"]


@pytest.mark.asyncio
async def test_equal_timestamps_ordered_by_feed_then_hash():
    store = _store()
    instant = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)
    await store.put(make_article(instant, feed_id="zulu", slug="z"))
    await store.put(make_article(instant, feed_id="alpha", slug="a"))

    articles = await store.get_partition("2026-03-10")

    assert [article.feedId for article in articles] == ["alpha", "zulu"]


@pytest.mark.asyncio
async def test_feed_id_prefixes_keep_tie_break_order():
    store = _store()
    instant = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)
    for feed_id in ("news_wire", "news", "news-2", "news.eu"):
        for i in range(2):
            await store.put(make_article(instant, feed_id=feed_id, slug=f"{feed_id}-{i}"))

    articles = await store.get_partition("2026-03-10")

    keys = [(article.feedId, article.contentHash) for article in articles]
    assert keys == sorted(keys)
    assert [feed_id for feed_id, _ in keys][:2] == ["news", "news"]


@pytest.mark.asyncio
async def test_range_spans_partitions_newest_first():
    store = _store()
    articles = [
        make_article(datetime(2026, 3, day, hour, tzinfo=timezone.utc), slug=f"d{day}h{hour}")
        for day in (8, 9, 10) for hour in (1, 20)
    ]
    for article in articles:
        await store.put(article)

    result = await store.get_range(date(2026, 3, 8), date(2026, 3, 9))

    assert _titles(result) == ["Article d9h20", "Article d9h1", "Article d8h20", "Article d8h1"]
    # Reversed bounds read the same range
    assert _titles(await store.get_range("2026-03-09", "2026-03-08")) == _titles(result)


@pytest.mark.asyncio
async def test_range_merges_fallback_partitions_by_sort_key():
    store = _store()
    late = make_article(datetime(2026, 3, 9, 23, 59, tzinfo=timezone.utc), slug="late")
    # Filed under a later partition, as happens with the fetch-time fallback
    early = make_article(datetime(2026, 3, 9, 1, 0, tzinfo=timezone.utc), slug="early")
    early = early.model_copy(update={"partitionKey": "2026-03-10"})
    await store.put(late)
    await store.put(early)

    result = await store.get_range("2026-03-09", "2026-03-10")

    assert _titles(result) == ["Article late", "Article early"]


@pytest.mark.asyncio
async def test_delete_partition_removes_everything_at_once():
    store = _store()
    for hour in range(3):
        await store.put(make_article(datetime(2026, 3, 1, hour, tzinfo=timezone.utc), slug=f"h{hour}"))
    await store.put(make_article(datetime(2026, 3, 2, 0, tzinfo=timezone.utc), slug="next"))

    deleted = await store.delete_partition(date(2026, 3, 1))

    assert deleted == 3
    assert await store.get_partition("2026-03-01") == []
    assert await store.list_partitions() == ["2026-03-02"]


@pytest.mark.asyncio
async def test_delete_only_given_sort_keys_keeps_newcomers():
    store = _store()
    snapshot = [make_article(datetime(2026, 3, 1, hour, tzinfo=timezone.utc), slug=f"h{hour}") for hour in range(2)]
    for article in snapshot:
        await store.put(article)
    newcomer = make_article(datetime(2026, 3, 1, 12, tzinfo=timezone.utc), slug="newcomer")
    await store.put(newcomer)

    deleted = await store.delete_partition("2026-03-01", sort_keys=[article.sortKey for article in snapshot])

    assert deleted == 2
    assert _titles(await store.get_partition("2026-03-01")) == ["Article newcomer"]


@pytest.mark.asyncio
async def test_list_partitions_before():
    store = _store()
    for day in (1, 2, 3):
        await store.put(make_article(datetime(2026, 3, day, tzinfo=timezone.utc)))

    assert await store.list_partitions(before=date(2026, 3, 3)) == ["2026-03-01", "2026-03-02"]


@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    backend = FlakyBackend(failures=2)
    store = _store(backend)
    article = make_article(datetime(2026, 3, 10, tzinfo=timezone.utc))

    await store.put(article)

    assert backend.put_calls == 3
    assert await store.get(article.location) == article


@pytest.mark.asyncio
async def test_exhausted_retries_raise_store_unavailable():
    backend = FlakyBackend(failures=10)
    store = _store(backend)

    with pytest.raises(StoreUnavailableError):
        await store.put(make_article(datetime(2026, 3, 10, tzinfo=timezone.utc)))

    assert backend.put_calls == 3


@pytest.mark.asyncio
async def test_permanent_failure_not_retried():
    backend = FlakyBackend(failures=10, error=PermanentStorageError)
    store = _store(backend)

    with pytest.raises(PermanentStorageError):
        await store.put(make_article(datetime(2026, 3, 10, tzinfo=timezone.utc)))

    assert backend.put_calls == 1


@pytest.mark.asyncio
async def test_concurrent_writers_to_same_partition():
    store = _store()
    base = datetime(2026, 3, 10, tzinfo=timezone.utc)

    await asyncio.gather(*(
        store.put(make_article(base + timedelta(seconds=i), slug=f"s{i}")) for i in range(50)
    ))

    articles = await store.get_partition("2026-03-10")
    assert len(articles) == 50
    assert [article.sortKey for article in articles] == sorted(article.sortKey for article in articles)


@pytest.mark.asyncio
async def test_tiered_reader_merges_and_deduplicates():
    hot = _store()
    cold = _store(InMemoryStorageBackend("cold"), ArchivalRecord)
    archived_at = datetime(2026, 3, 12, tzinfo=timezone.utc)

    in_hot = make_article(datetime(2026, 3, 1, 9, tzinfo=timezone.utc), slug="hot")
    in_cold = make_article(datetime(2026, 3, 1, 10, tzinfo=timezone.utc), slug="cold")
    in_both = make_article(datetime(2026, 3, 1, 8, tzinfo=timezone.utc), slug="both")
    await hot.put_many([in_hot, in_both])
    await cold.put_many([ArchivalRecord.from_article(in_cold, archived_at), ArchivalRecord.from_article(in_both, archived_at)])

    reader = TieredArticleReader(hot, cold)

    assert _titles(await reader.get_partition("2026-03-01")) == ["Article cold", "Article hot", "Article both"]
    assert _titles(await reader.get_range("2026-03-01", "2026-03-01")) == ["Article cold", "Article hot", "Article both"]
    assert (await reader.get(in_cold.location)).title == "Article cold"
