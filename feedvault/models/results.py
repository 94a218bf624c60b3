"""Run results for ingestion and archival"""
from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional
from enum import Enum

from feedvault.models.article import Article
from feedvault.models.source import FeedSource


class RegisterResult(str, Enum):
    """Outcome of a dedup index registration"""
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


class ArchivalState(str, Enum):
    """Archival migrator state"""
    IDLE = "idle"
    SCANNING = "scanning"
    MIGRATING = "migrating"


class FeedParseResult(BaseModel):
    """Outcome of fetching, parsing and normalizing one feed"""

    feed: FeedSource
    articles: List[Article] = Field(default_factory=list)
    success: bool = False
    errorMessage: Optional[str] = None
    duration: float = Field(0.0, description="Seconds")
    itemsFound: int = Field(0, description="Entries present in the feed document")
    extractionFailures: int = Field(0, description="Entries dropped for lack of a usable link")


class IngestionSummary(BaseModel):
    """User-visible summary of one ingestion run"""

    feedsAttempted: int = 0
    feedsSucceeded: int = 0
    feedsFailed: int = 0
    itemsFound: int = 0
    articlesStored: int = 0
    duplicates: int = 0
    extractionFailures: int = 0
    storageFailures: int = 0
    errors: List[str] = Field(default_factory=list, description="Per-feed and storage error messages")
    deadlineExceeded: bool = False
    aborted: bool = Field(False, description="Store became unreachable; later writes were skipped")
    duration: float = 0.0


class ArchivalResult(BaseModel):
    """Outcome of one archival sweep"""

    cutoff: Optional[date] = None
    partitionsProcessed: int = 0
    articlesArchived: int = 0
    articlesDeleted: int = 0
    errors: List[str] = Field(default_factory=list)
    duration: float = 0.0
