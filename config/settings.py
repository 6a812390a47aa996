"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Discogs Credentials - Optional (missing credentials disable Discogs)
    discogs_token: str | None = Field(None, description="Discogs personal access token")
    discogs_consumer_key: str | None = Field(None, description="Discogs OAuth consumer key")
    discogs_consumer_secret: str | None = Field(
        None, description="Discogs OAuth consumer secret"
    )
    discogs_oauth_token: str | None = Field(
        None, description="Previously authorized OAuth access token"
    )
    discogs_oauth_token_secret: str | None = Field(
        None, description="Previously authorized OAuth access token secret"
    )
    discogs_oauth_callback_url: str = Field(
        default="http://localhost:8000/api/v1/discogs/oauth/callback",
        description="Redirect URI registered with the Discogs application",
    )
    discogs_user_agent: str = Field(
        default="VinylEnrichmentService/1.0", description="User-Agent sent to Discogs"
    )

    # Discogs Rate Limiting Configuration
    discogs_rate_limit: int = Field(
        default=60, description="Max Discogs API requests per trailing minute"
    )
    discogs_max_concurrent: int = Field(
        default=5, description="Max concurrent in-flight Discogs HTTP calls"
    )
    discogs_max_retries: int = Field(
        default=3, description="Max retry attempts on 429 rate limit errors"
    )
    discogs_exhausted_cooldown: float = Field(
        default=60.0,
        description="Cooldown in seconds when Discogs reports zero remaining quota",
    )
    discogs_default_backoff: float = Field(
        default=60.0, description="Backoff in seconds for a 429 without Retry-After"
    )
    discogs_request_timeout: float = Field(
        default=10.0, description="Timeout in seconds for a single HTTP attempt"
    )

    # Discogs Cache Configuration
    discogs_search_cache_ttl: int = Field(
        default=3600, description="TTL in seconds for barcode/identifier searches"
    )
    discogs_release_cache_ttl: int = Field(
        default=14400, description="TTL in seconds for release tracklists (default: 4 hours)"
    )
    discogs_cache_maxsize: int = Field(
        default=1000, description="Maximum entries in Discogs caches"
    )

    # Enrichment Configuration
    enrichment_jitter_min: float = Field(
        default=0.5, description="Minimum start delay in seconds for a background lookup"
    )
    enrichment_jitter_max: float = Field(
        default=2.0, description="Maximum start delay in seconds for a background lookup"
    )

    # Application Configuration
    host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    port: int = Field(default=8000, description="Port to run the server on")
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Path | None = Field(None, description="Optional log file path")

    # Telemetry
    enable_telemetry: bool = Field(default=True, description="Enable PostHog telemetry")
    posthog_api_key: str | None = Field(None, description="PostHog API key for telemetry")
    posthog_host: str = Field(default="https://us.i.posthog.com", description="PostHog host URL")

    # Sentry Configuration
    sentry_dsn: str | None = Field(None, description="Sentry DSN for error tracking")

    # Application Metadata
    app_name: str = Field(default="Vinyl-Enrichment", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def oauth_configured(self) -> bool:
        """Whether OAuth consumer credentials are available."""
        return bool(self.discogs_consumer_key and self.discogs_consumer_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
