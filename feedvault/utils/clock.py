"""Clock collaborator so partitioning and archival cutoffs can be tested deterministically"""
from datetime import datetime, timezone


class SystemClock:
    """Wall clock in UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a given instant; naive datetimes are taken as UTC"""

    def __init__(self, instant: datetime):
        self.set(instant)

    def set(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._instant
