from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError

from feedvault.exceptions import DuplicateSourceError
from feedvault.services.source_registry import MongoFeedSourceRegistry, StaticFeedSourceRegistry

from conftest import make_source


@pytest.mark.asyncio
async def test_static_registry_rejects_url_used_by_another_feed():
    registry = StaticFeedSourceRegistry([make_source("alpha")])

    with pytest.raises(DuplicateSourceError):
        await registry.save(make_source("mirror", url="https://alpha.example.com/rss"))

    assert await registry.get("mirror") is None


@pytest.mark.asyncio
async def test_static_registry_allows_resaving_same_feed():
    registry = StaticFeedSourceRegistry([make_source("alpha")])

    await registry.save(make_source("alpha", enabled=False))

    assert (await registry.get("alpha")).enabled is False
    assert (await registry.find_by_url("https://alpha.example.com/rss")).feedId == "alpha"


@pytest.mark.asyncio
async def test_mongo_unique_url_violation_becomes_duplicate_source():
    collection = MagicMock()
    collection.replace_one = AsyncMock(side_effect=DuplicateKeyError("E11000 duplicate key error index: url_1"))
    db = MagicMock()
    db.__getitem__.return_value = collection

    with pytest.raises(DuplicateSourceError):
        await MongoFeedSourceRegistry(db).save(make_source("mirror"))
