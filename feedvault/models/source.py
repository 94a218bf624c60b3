"""FeedSource and ExtractionPolicy models for configured syndication feeds"""
from pydantic import BaseModel, Field, ValidationError, field_validator
from typing import Optional, Dict
from enum import Enum
import logging

logger = logging.getLogger(__name__)

# Every allowed character sorts above the "#" sort key separator
FEED_ID_PATTERN = r"^[A-Za-z0-9._-]+$"


class ImageSource(str, Enum):
    """Where to look for an item's image"""
    AUTO = "auto"
    ENCLOSURE = "enclosure"
    MEDIA_THUMBNAIL = "media_thumbnail"
    MEDIA_CONTENT = "media_content"
    CONTENT_IMG = "content_img"
    CUSTOM_REGEX = "custom_regex"
    NONE = "none"


class DescriptionSource(str, Enum):
    """Which raw block feeds the stored description"""
    AUTO = "auto"
    DESCRIPTION = "description"
    SUMMARY = "summary"
    CONTENT = "content"


class ExtractionPolicy(BaseModel):
    """Per-feed (or global) extraction settings. Every field is optional; unset means "inherit"."""

    imageSource: Optional[str] = Field(None, description="One of ImageSource values")
    customImageRegex: Optional[str] = Field(None, description="Pattern whose first group is the image URL")
    descriptionSource: Optional[str] = Field(None, description="One of DescriptionSource values")
    stripHtml: Optional[bool] = Field(None, description="Remove tags and decode entities")
    maxDescriptionLength: Optional[int] = Field(None, description="Truncate longer descriptions")
    customDateFormat: Optional[str] = Field(None, description="strptime format tried before standard ones")
    fieldMappings: Optional[Dict[str, str]] = Field(
        None, description="Canonical field -> raw entry key tried first (author, image, description, categories, date)"
    )

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "imageSource": "custom_regex",
                "customImageRegex": "data-src=\"([^\"]+)\"",
                "stripHtml": True,
                "maxDescriptionLength": 300,
                "fieldMappings": {"author": "dc_creator"}
            }
        }


class FeedSource(BaseModel):
    """A syndication feed to collect from"""

    feedId: str = Field(
        ..., pattern=FEED_ID_PATTERN, description="Stable feed identifier, part of the dedup and sort keys"
    )
    name: str = Field(..., description="Display name of the feed")
    url: str = Field(..., description="Retrieval URL")
    category: Optional[str] = Field(None, description="Configured category, merged into article tags")
    country: Optional[str] = Field(None, description="ISO 3166 country code")
    priorityTier: int = Field(default=3, description="1 = most important")
    enabled: bool = Field(default=True, description="Enable/disable collection")
    extractionPolicy: Optional[ExtractionPolicy] = Field(None, description="Per-feed override")

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "feedId": "bbc-world",
                "name": "BBC World",
                "url": "https://feeds.bbci.co.uk/news/world/rss.xml",
                "category": "World",
                "country": "GB",
                "priorityTier": 1,
                "enabled": True
            }
        }

    @field_validator("extractionPolicy", mode="wrap")
    @classmethod
    def _drop_malformed_policy_fields(cls, value, handler):
        """Malformed override fields are treated as unset, never fatal"""
        try:
            return handler(value)
        except ValidationError as e:
            if not isinstance(value, dict):
                logger.warning(f"Ignoring malformed extraction policy: {value!r}")
                return None
            bad_fields = {part for err in e.errors() for part in err.get("loc", ()) if part in value}
            logger.warning(f"Ignoring malformed extraction policy fields: {sorted(map(str, bad_fields))}")
            cleaned = {k: v for k, v in value.items() if k not in bad_fields}
            try:
                return handler(cleaned)
            except ValidationError:
                return None
