"""Data models for the feed ingestion service"""
from feedvault.models.source import FeedSource, ExtractionPolicy, ImageSource, DescriptionSource
from feedvault.models.article import (
    RawFeedItem,
    ExtractedFields,
    StorageLocation,
    Article,
    ArchivalRecord,
    DedupEntry,
)
from feedvault.models.results import (
    RegisterResult,
    ArchivalState,
    FeedParseResult,
    IngestionSummary,
    ArchivalResult,
)

__all__ = [
    "FeedSource",
    "ExtractionPolicy",
    "ImageSource",
    "DescriptionSource",
    "RawFeedItem",
    "ExtractedFields",
    "StorageLocation",
    "Article",
    "ArchivalRecord",
    "DedupEntry",
    "RegisterResult",
    "ArchivalState",
    "FeedParseResult",
    "IngestionSummary",
    "ArchivalResult",
]
