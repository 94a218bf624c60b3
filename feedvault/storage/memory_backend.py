"""In-memory storage backend (single process, nothing persisted)"""
import asyncio
from typing import Dict, Iterable, List, Optional

from feedvault.storage.backend import Record, StorageBackend


class InMemoryStorageBackend(StorageBackend):
    """Partition key -> sort key -> record. Used with STORAGE_MODE=memory and in tests."""

    def __init__(self, name: str = "memory"):
        self.name = name
        self._partitions: Dict[str, Dict[str, Record]] = {}
        self._lock = asyncio.Lock()

    async def put(self, record: Record) -> None:
        async with self._lock:
            self._partitions.setdefault(record['partitionKey'], {})[record['sortKey']] = dict(record)

    async def batch_put(self, records: List[Record]) -> int:
        async with self._lock:
            for record in records:
                self._partitions.setdefault(record['partitionKey'], {})[record['sortKey']] = dict(record)
        return len(records)

    async def get(self, partition_key: str, sort_key: str) -> Optional[Record]:
        record = self._partitions.get(partition_key, {}).get(sort_key)
        return dict(record) if record else None

    async def query_partition(self, partition_key: str, limit: Optional[int] = None) -> List[Record]:
        partition = self._partitions.get(partition_key, {})
        records = [dict(partition[key]) for key in sorted(partition)]
        return records[:limit] if limit else records

    async def query_range(self, start_key: str, end_key: str) -> List[Record]:
        records = []
        for partition_key in sorted(self._partitions, reverse=True):
            if start_key <= partition_key <= end_key:
                records.extend(await self.query_partition(partition_key))
        return records

    async def delete_partition(self, partition_key: str, sort_keys: Optional[Iterable[str]] = None) -> int:
        async with self._lock:
            partition = self._partitions.get(partition_key)
            if partition is None:
                return 0
            if sort_keys is None:
                del self._partitions[partition_key]
                return len(partition)
            removed = 0
            for sort_key in set(sort_keys):
                if partition.pop(sort_key, None) is not None:
                    removed += 1
            if not partition:
                del self._partitions[partition_key]
            return removed

    async def list_partitions(self, before: Optional[str] = None) -> List[str]:
        return sorted(
            key for key, partition in self._partitions.items()
            if partition and (before is None or key < before)
        )
