from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from feedvault.database import Database, get_database
from feedvault.main import app
from feedvault.services.source_registry import StaticFeedSourceRegistry
from feedvault.storage.dedup_index import InMemoryDedupIndex
from feedvault.storage.memory_backend import InMemoryStorageBackend
from feedvault.storage.retry import StorageRetry
from feedvault.utils.clock import FixedClock

from conftest import FETCHED_AT, FakeFetcher, make_article, make_source, rss_document

NO_WAIT = StorageRetry(attempts=2, wait_seconds=0)

FEED_DOCUMENT = rss_document([
    {"title": "Morning briefing", "link": "https://alpha.example.com/morning", "pubDate": "Tue, 10 Mar 2026 07:00:00 GMT"},
    {"title": "Late update", "link": "https://alpha.example.com/late", "pubDate": "Tue, 10 Mar 2026 11:00:00 GMT"},
])


def _memory_database() -> Database:
    db = Database(clock=FixedClock(FETCHED_AT))
    db.wire(
        InMemoryStorageBackend("hot"),
        InMemoryStorageBackend("cold"),
        InMemoryDedupIndex(NO_WAIT),
        StaticFeedSourceRegistry([make_source("alpha")]),
        NO_WAIT,
        fetcher=FakeFetcher({"https://alpha.example.com/rss": FEED_DOCUMENT}),
    )
    return db


@pytest.fixture
def db() -> Database:
    return _memory_database()


@pytest_asyncio.fixture
async def client(db: Database) -> AsyncClient:
    async def _override() -> Database:
        return db

    app.dependency_overrides[get_database] = _override
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.pop(get_database, None)


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_ingest_then_read_newest_first(client: AsyncClient):
    response = await client.post("/api/jobs/ingest")
    assert response.status_code == 200
    assert response.json()["articlesStored"] == 2

    response = await client.get("/api/articles", params={"start": "2026-03-10"})
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert [article["title"] for article in body["articles"]] == ["Late update", "Morning briefing"]

    response = await client.get("/api/articles/partitions/2026-03-10", params={"limit": 1})
    assert response.json()["count"] == 1
    assert response.json()["articles"][0]["title"] == "Late update"


@pytest.mark.asyncio
async def test_article_lookup_by_feed_and_hash(client: AsyncClient, db: Database):
    await client.post("/api/jobs/ingest")
    [article, _] = await db.hot_store.get_partition("2026-03-10")

    response = await client.get(f"/api/articles/alpha/{article.contentHash}")
    assert response.status_code == 200
    assert response.json()["link"] == article.link

    response = await client.get("/api/articles/alpha/" + "0" * 64)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_archive_job_and_archived_reads(client: AsyncClient, db: Database):
    old = make_article(datetime(2025, 11, 1, 9, tzinfo=timezone.utc), feed_id="alpha", slug="old")
    await db.hot_store.put(old)

    response = await client.post("/api/jobs/archive", params={"retentionDays": 90})
    assert response.status_code == 200
    assert response.json()["partitionsProcessed"] == 1
    assert response.json()["articlesArchived"] == 1

    hot_only = await client.get("/api/articles", params={"start": "2025-11-01"})
    assert hot_only.json()["total"] == 0

    with_archive = await client.get("/api/articles", params={"start": "2025-11-01", "includeArchived": True})
    assert [article["title"] for article in with_archive.json()["articles"]] == ["Article old"]


@pytest.mark.asyncio
async def test_archive_job_conflicts_with_running_sweep(client: AsyncClient, db: Database):
    await db.hot_store.archival_lock.acquire()
    try:
        response = await client.post("/api/jobs/archive")
    finally:
        db.hot_store.archival_lock.release()

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_source_crud(client: AsyncClient):
    new_source = {
        "feedId": "beta",
        "name": "Beta Daily",
        "url": "https://beta.example.com/rss",
        "priorityTier": 1,
        "extractionPolicy": {"imageSource": "media_thumbnail"},
    }

    response = await client.post("/api/sources", json=new_source)
    assert response.status_code == 201

    response = await client.post("/api/sources", json=new_source)
    assert response.status_code == 400

    response = await client.get("/api/sources")
    assert [source["feedId"] for source in response.json()["sources"]] == ["beta", "alpha"]

    response = await client.put("/api/sources/beta", json={"enabled": False})
    assert response.status_code == 200
    assert response.json()["enabled"] is False

    response = await client.get("/api/sources", params={"enabled_only": True})
    assert [source["feedId"] for source in response.json()["sources"]] == ["alpha"]

    response = await client.delete("/api/sources/beta")
    assert response.status_code == 200
    response = await client.get("/api/sources/beta")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stats_reports_partitions_and_last_runs(client: AsyncClient):
    await client.post("/api/jobs/ingest")

    response = await client.get("/api/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["hot"]["partitions"] == 1
    assert body["hot"]["newest"] == "2026-03-10"
    assert body["archivalState"] == "idle"
    assert body["lastIngestion"]["articlesStored"] == 2
    assert body["lastArchival"] is None


@pytest.mark.asyncio
async def test_source_with_existing_url_is_rejected(client: AsyncClient):
    duplicate_url = {"feedId": "alpha-mirror", "name": "Alpha Mirror", "url": "https://alpha.example.com/rss"}

    response = await client.post("/api/sources", json=duplicate_url)
    assert response.status_code == 400
    assert "URL" in response.json()["detail"]

    await client.post("/api/sources", json={"feedId": "beta", "name": "Beta", "url": "https://beta.example.com/rss"})
    response = await client.put("/api/sources/beta", json={"url": "https://alpha.example.com/rss"})
    assert response.status_code == 400

    response = await client.get("/api/sources/beta")
    assert response.json()["url"] == "https://beta.example.com/rss"


@pytest.mark.asyncio
async def test_source_with_unsortable_feed_id_is_rejected(client: AsyncClient):
    response = await client.post(
        "/api/sources", json={"feedId": "news!", "name": "News", "url": "https://news.example.com/rss"}
    )

    assert response.status_code == 422
