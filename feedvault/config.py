"""Configuration management using Pydantic Settings"""
from pydantic_settings import BaseSettings
from typing import Optional

from feedvault.models.source import ExtractionPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # MongoDB Configuration
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "feedvault"
    storage_mode: str = "mongo"  # "mongo" or "memory" (single process, nothing persisted)

    # Collections
    hot_collection: str = "articles_hot"
    cold_collection: str = "articles_cold"
    dedup_collection: str = "dedup_index"
    sources_collection: str = "feed_sources"

    # Logging
    log_level: str = "info"

    # Ingestion
    max_concurrent_feeds: int = 10
    per_feed_timeout_seconds: float = 30.0
    run_deadline_seconds: float = 600.0  # Whole fetch stage; completed feeds are still stored
    user_agent: str = "Mozilla/5.0 (compatible; FeedVault/1.0)"

    # Storage retries (transient errors only)
    storage_retry_attempts: int = 3
    storage_retry_wait_seconds: float = 0.5

    # Archival
    retention_days: int = 90

    # Scheduler
    ingestion_interval_minutes: int = 30
    archival_hour_utc: int = 3

    # Global parser defaults (per-feed overrides win field by field)
    default_image_source: Optional[str] = None
    default_custom_image_regex: Optional[str] = None
    default_description_source: Optional[str] = None
    default_strip_html: bool = True
    default_max_description_length: Optional[int] = 500
    default_date_format: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False

    def default_extraction_policy(self) -> ExtractionPolicy:
        """Global extraction defaults as a policy layer for the resolver"""
        return ExtractionPolicy(
            imageSource=self.default_image_source,
            customImageRegex=self.default_custom_image_regex,
            descriptionSource=self.default_description_source,
            stripHtml=self.default_strip_html,
            maxDescriptionLength=self.default_max_description_length,
            customDateFormat=self.default_date_format,
        )


# Global settings instance
settings = Settings()
