"""Retry with backoff at the storage-call boundary"""
import logging

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from feedvault.exceptions import StoreUnavailableError, TransientStorageError

logger = logging.getLogger(__name__)


class StorageRetry:
    """Retry TransientStorageError with exponential backoff; permanent errors pass straight through"""

    def __init__(self, attempts: int = 3, wait_seconds: float = 0.5, max_wait_seconds: float = 10.0):
        self.attempts = max(1, attempts)
        self.wait_seconds = wait_seconds
        self.max_wait_seconds = max_wait_seconds

    async def call(self, operation, *args, **kwargs):
        """
        Await operation(*args, **kwargs), retrying transient failures.

        Raises:
            StoreUnavailableError: Still failing transiently after every attempt
            PermanentStorageError: Propagated from the operation without retry
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.attempts),
                wait=wait_exponential(multiplier=self.wait_seconds, max=self.max_wait_seconds),
                retry=retry_if_exception_type(TransientStorageError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await operation(*args, **kwargs)
        except TransientStorageError as e:
            raise StoreUnavailableError(f"Gave up after {self.attempts} attempts: {e}") from e
