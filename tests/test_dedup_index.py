from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import AutoReconnect, DuplicateKeyError, OperationFailure

from feedvault.exceptions import PermanentStorageError, StoreUnavailableError
from feedvault.models.article import StorageLocation
from feedvault.models.results import RegisterResult
from feedvault.storage.dedup_index import InMemoryDedupIndex, MongoDedupIndex
from feedvault.storage.retry import StorageRetry

LOCATION = StorageLocation(partitionKey="2026-03-10", sortKey="8226000000000#example#abc")
NO_WAIT = StorageRetry(attempts=3, wait_seconds=0)


@pytest.mark.asyncio
async def test_register_then_duplicate():
    index = InMemoryDedupIndex()

    assert await index.register("example", "abc", LOCATION) == RegisterResult.INSERTED
    assert await index.register("example", "abc", LOCATION) == RegisterResult.ALREADY_EXISTS
    assert await index.exists("example", "abc")

    entry = await index.lookup("example", "abc")
    assert entry.location == LOCATION


@pytest.mark.asyncio
async def test_same_hash_in_different_feeds_is_not_a_duplicate():
    index = InMemoryDedupIndex()

    assert await index.register("feed-a", "abc", LOCATION) == RegisterResult.INSERTED
    assert await index.register("feed-b", "abc", LOCATION) == RegisterResult.INSERTED


@pytest.mark.asyncio
async def test_concurrent_registrations_yield_exactly_one_insert():
    index = InMemoryDedupIndex()

    outcomes = await asyncio.gather(*(index.register("example", "abc", LOCATION) for _ in range(25)))

    assert outcomes.count(RegisterResult.INSERTED) == 1
    assert outcomes.count(RegisterResult.ALREADY_EXISTS) == 24
    assert len(index) == 1


@pytest.mark.asyncio
async def test_release_allows_registering_again():
    index = InMemoryDedupIndex()
    await index.register("example", "abc", LOCATION)

    await index.release("example", "abc")

    assert not await index.exists("example", "abc")
    assert await index.register("example", "abc", LOCATION) == RegisterResult.INSERTED


def _mongo_index(collection) -> MongoDedupIndex:
    db = MagicMock()
    db.__getitem__.return_value = collection
    return MongoDedupIndex(db, "dedup_index", retry=NO_WAIT)


@pytest.mark.asyncio
async def test_mongo_duplicate_key_from_other_writer_is_already_exists():
    collection = MagicMock()
    collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("E11000 duplicate key"))
    collection.find_one = AsyncMock(return_value={"claim": "someone-else"})

    result = await _mongo_index(collection).register("example", "abc", LOCATION)

    assert result == RegisterResult.ALREADY_EXISTS


@pytest.mark.asyncio
async def test_mongo_retried_insert_recognises_own_claim():
    collection = MagicMock()
    claims = []

    async def insert_one(doc):
        claims.append(doc["claim"])
        if len(claims) == 1:
            # First attempt lands on the server but the reply is lost
            raise AutoReconnect("connection reset")
        raise DuplicateKeyError("E11000 duplicate key")

    async def find_one(query, projection=None):
        return {"claim": claims[0]}

    collection.insert_one = insert_one
    collection.find_one = find_one

    result = await _mongo_index(collection).register("example", "abc", LOCATION)

    assert result == RegisterResult.INSERTED
    assert len(claims) == 2
    assert claims[0] == claims[1]


@pytest.mark.asyncio
async def test_mongo_persistent_transient_errors_surface_as_unavailable():
    collection = MagicMock()
    collection.insert_one = AsyncMock(side_effect=AutoReconnect("no primary"))

    with pytest.raises(StoreUnavailableError):
        await _mongo_index(collection).register("example", "abc", LOCATION)

    assert collection.insert_one.await_count == 3


@pytest.mark.asyncio
async def test_mongo_permanent_error_is_not_retried():
    collection = MagicMock()
    collection.insert_one = AsyncMock(side_effect=OperationFailure("not authorized"))

    with pytest.raises(PermanentStorageError):
        await _mongo_index(collection).register("example", "abc", LOCATION)

    assert collection.insert_one.await_count == 1
