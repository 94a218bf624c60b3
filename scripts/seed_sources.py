"""Seed initial feed sources into the database"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient
from feedvault.config import settings
from feedvault.models.source import FeedSource
from feedvault.services.source_registry import MongoFeedSourceRegistry

# Initial feeds across formats (RSS 2.0, Atom, RDF) and image conventions
SOURCES = [
    # Tier 1
    {
        "feedId": "bbc-world",
        "name": "BBC News - World",
        "url": "https://feeds.bbci.co.uk/news/world/rss.xml",
        "category": "World",
        "country": "GB",
        "priorityTier": 1,
        "enabled": True,
        "extractionPolicy": {"imageSource": "media_thumbnail"}
    },
    {
        "feedId": "guardian-world",
        "name": "The Guardian - World",
        "url": "https://www.theguardian.com/world/rss",
        "category": "World",
        "country": "GB",
        "priorityTier": 1,
        "enabled": True,
        "extractionPolicy": {"imageSource": "media_content", "maxDescriptionLength": 300}
    },
    {
        "feedId": "npr-news",
        "name": "NPR News",
        "url": "https://feeds.npr.org/1001/rss.xml",
        "category": "News",
        "country": "US",
        "priorityTier": 1,
        "enabled": True
    },

    # Tier 2
    {
        "feedId": "ars-technica",
        "name": "Ars Technica",
        "url": "https://feeds.arstechnica.com/arstechnica/index",
        "category": "Technology",
        "country": "US",
        "priorityTier": 2,
        "enabled": True,
        "extractionPolicy": {"descriptionSource": "description", "fieldMappings": {"author": "dc_creator"}}
    },
    {
        "feedId": "hacker-news",
        "name": "The Hacker News",
        "url": "https://feeds.feedburner.com/TheHackersNews",
        "category": "Security",
        "country": "US",
        "priorityTier": 2,
        "enabled": True,
        "extractionPolicy": {"imageSource": "enclosure"}
    },
    {
        "feedId": "nasa-breaking",
        "name": "NASA Breaking News",
        "url": "https://www.nasa.gov/news-release/feed/",
        "category": "Science",
        "country": "US",
        "priorityTier": 2,
        "enabled": True,
        "extractionPolicy": {"imageSource": "content_img"}
    },

    # Tier 3
    {
        "feedId": "python-insider",
        "name": "Python Insider",
        "url": "https://pythoninsider.blogspot.com/feeds/posts/default",
        "category": "Programming",
        "priorityTier": 3,
        "enabled": True,
        "extractionPolicy": {"descriptionSource": "content", "stripHtml": True, "maxDescriptionLength": 400}
    },
    {
        "feedId": "slashdot",
        "name": "Slashdot",
        "url": "https://rss.slashdot.org/Slashdot/slashdotMain",
        "category": "Technology",
        "country": "US",
        "priorityTier": 3,
        "enabled": False
    },
]


async def seed_sources():
    """Seed feed sources into MongoDB"""
    client = AsyncIOMotorClient(settings.mongodb_url)
    db = client[settings.database_name]
    registry = MongoFeedSourceRegistry(db, settings.sources_collection)

    print(f"Connecting to MongoDB: {settings.database_name}")
    await registry.setup()

    inserted_count = 0
    skipped_count = 0

    for source_data in SOURCES:
        source = FeedSource(**source_data)

        if await registry.get(source.feedId):
            print(f"⊘ Skipped (already exists): {source.name}")
            skipped_count += 1
            continue

        await registry.save(source)
        print(f"✓ Inserted: {source.name} (tier {source.priorityTier})")
        inserted_count += 1

    print(f"\nSummary:")
    print(f"  Inserted: {inserted_count}")
    print(f"  Skipped: {skipped_count}")
    print(f"  Total: {len(SOURCES)}")

    client.close()


if __name__ == "__main__":
    asyncio.run(seed_sources())
