"""Storage backend contract shared by the hot and cold article stores"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

Record = Dict


class StorageBackend(ABC):
    """Abstract partitioned record storage.

    Records are plain dicts carrying at least ``partitionKey`` and ``sortKey``;
    the pair is the record's identity, so writes are upserts. Within a
    partition, reads return records in ascending ``sortKey`` order.

    Implementations raise TransientStorageError for retryable failures and
    PermanentStorageError for everything else.
    """

    name: str = "storage"

    @abstractmethod
    async def put(self, record: Record) -> None:
        """Upsert one record"""

    @abstractmethod
    async def batch_put(self, records: List[Record]) -> int:
        """Upsert many records, returns how many were written"""

    @abstractmethod
    async def get(self, partition_key: str, sort_key: str) -> Optional[Record]:
        """Point lookup"""

    @abstractmethod
    async def query_partition(self, partition_key: str, limit: Optional[int] = None) -> List[Record]:
        """Records of one partition, ascending sortKey"""

    @abstractmethod
    async def query_range(self, start_key: str, end_key: str) -> List[Record]:
        """Records of every partition in [start_key, end_key], grouped by partition, ascending sortKey within"""

    @abstractmethod
    async def delete_partition(self, partition_key: str, sort_keys: Optional[Iterable[str]] = None) -> int:
        """
        Remove a partition's records, all at once from a reader's point of view.

        With sort_keys, only those records are removed and any others stay
        visible afterwards. Returns the number of records removed.
        """

    @abstractmethod
    async def list_partitions(self, before: Optional[str] = None) -> List[str]:
        """Partition keys (optionally only those < before), ascending"""

    async def recover_interrupted_deletions(self) -> int:
        """Make partitions whose deletion was interrupted visible again. Returns how many."""
        return 0

    async def setup(self) -> None:
        """Create indexes or other structures the backend needs"""
