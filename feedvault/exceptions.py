"""Error taxonomy for ingestion, storage and archival"""
from typing import Optional


class FeedVaultError(Exception):
    """Base class for all service errors"""


class FetchError(FeedVaultError):
    """Network failure, timeout or malformed transport response for one feed"""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ExtractionFailure(FeedVaultError):
    """A field strategy produced nothing usable. Never fatal."""


class LinkMissingError(ExtractionFailure):
    """Item has no usable link, so no dedup key can be computed"""


class StorageError(FeedVaultError):
    """Base class for storage backend failures"""


class TransientStorageError(StorageError):
    """Retryable failure (connection reset, timeout, failover)"""


class PermanentStorageError(StorageError):
    """Non-retryable failure for a single write or read"""


class StoreUnavailableError(StorageError):
    """Transient failures persisted past every retry; the store is treated as unreachable"""


class ArchivalPartialFailure(FeedVaultError):
    """Copy phase of a partition did not complete; hot partition left in place"""

    def __init__(self, partition_key: str, message: str):
        self.partition_key = partition_key
        super().__init__(f"{partition_key}: {message}")


class SweepInProgressError(FeedVaultError):
    """Another archival sweep already holds the store's lock"""


class DuplicateSourceError(FeedVaultError):
    """Another feed already uses this feedId or URL"""
