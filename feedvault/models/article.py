"""Article models: raw feed items, extracted fields and the persisted canonical record"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional


class RawFeedItem(BaseModel):
    """One syndication entry as parsed, before any field extraction"""

    title: str = ""
    link: str = ""
    description: str = ""
    summary: str = ""
    content: List[str] = Field(default_factory=list, description="content:encoded / atom content blocks")
    published: str = Field("", description="Raw date string as found in the feed")
    publishedParsed: Optional[Any] = Field(None, description="UTC time tuple from the feed parser")
    author: str = ""
    authorDetail: Dict[str, Any] = Field(default_factory=dict)
    enclosures: List[Dict[str, Any]] = Field(default_factory=list)
    mediaThumbnails: List[Dict[str, Any]] = Field(default_factory=list)
    mediaContent: List[Dict[str, Any]] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    extras: Dict[str, Any] = Field(default_factory=dict, description="Full raw entry for custom field mappings")


class ExtractedFields(BaseModel):
    """Field extractor output for one item; empty values mean every strategy came up empty"""

    image: Optional[str] = None
    description: str = ""
    author: str = ""
    categories: List[str] = Field(default_factory=list)
    publishedAt: Optional[datetime] = None


class StorageLocation(BaseModel):
    """Where an article lives in the time-partitioned store"""

    partitionKey: str
    sortKey: str


class Article(BaseModel):
    """Canonical article as stored in the hot store"""

    title: str = Field(..., description="Article title")
    link: str = Field(..., description="Original article URL as published")
    description: str = Field("", description="Post-processed description")
    publishedAt: datetime = Field(..., description="Publication time (fetch time when estimated)")
    publishedAtEstimated: bool = Field(False, description="True when publishedAt fell back to fetchedAt")
    fetchedAt: datetime = Field(..., description="When we fetched it")
    feedId: str = Field(..., description="Source feed identifier")
    feedName: str = Field(..., description="Source feed display name")
    author: str = ""
    category: Optional[str] = None
    country: Optional[str] = None
    priorityTier: int = 3
    imageUrl: Optional[str] = None
    contentHash: str = Field(..., description="SHA-256 of the normalized link")
    tags: List[str] = Field(default_factory=list, description="Ordered, case-insensitively unique")
    partitionKey: str = Field(..., description="UTC date bucket, YYYY-MM-DD")
    sortKey: str = Field(..., description="Ascending order is newest first")

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "title": "Storm hits coast",
                "link": "https://example.com/news/storm",
                "description": "Heavy rain and winds...",
                "publishedAt": "2026-01-15T08:30:00Z",
                "fetchedAt": "2026-01-15T09:00:00Z",
                "feedId": "example-news",
                "feedName": "Example News",
                "contentHash": "abc123...",
                "partitionKey": "2026-01-15",
                "sortKey": "8231480199999#example-news#abc123..."
            }
        }

    @property
    def location(self) -> StorageLocation:
        return StorageLocation(partitionKey=self.partitionKey, sortKey=self.sortKey)


class ArchivalRecord(Article):
    """Article moved to cold storage"""

    archivedAt: datetime = Field(..., description="When the sweep copied it")

    @classmethod
    def from_article(cls, article: Article, archived_at: datetime) -> "ArchivalRecord":
        return cls(**article.model_dump(), archivedAt=archived_at)


class DedupEntry(BaseModel):
    """Identity of an article ever ingested for a feed"""

    feedId: str
    contentHash: str
    partitionKey: str
    sortKey: str
    firstSeenAt: datetime

    @property
    def location(self) -> StorageLocation:
        return StorageLocation(partitionKey=self.partitionKey, sortKey=self.sortKey)
