"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Configuration
    service_host: str = Field(default="0.0.0.0", description="Service host")
    service_port: int = Field(default=8000, description="Service port")
    log_level: str = Field(default="INFO", description="Logging level")
    docs_enabled: bool = Field(
        default=True, description="Expose /docs, /redoc and /openapi.json"
    )

    # Database Configuration
    database_url: Optional[str] = Field(
        default=None, description="PostgreSQL connection URL"
    )
    db_pool_min_size: int = Field(default=1, description="Minimum connection pool size")
    db_pool_max_size: int = Field(default=10, description="Maximum connection pool size")
    db_ssl: bool = Field(default=False, description="Require SSL for database connections")
    db_command_timeout: int = Field(default=30, description="Query timeout in seconds")

    # Dispatcher
    dispatch_default_batch_size: int = Field(
        default=10, ge=1, description="Jobs claimed per dispatcher run when unspecified"
    )
    dispatch_max_batch_size: int = Field(
        default=100, ge=1, description="Upper bound for dispatcher batch size"
    )

    # Batch sentiment coordinator
    sentiment_default_provider: str = Field(
        default="local", description="Sentiment provider used when none is requested"
    )
    sentiment_batch_size: int = Field(
        default=50, ge=1, description="Conversations per sub-batch"
    )
    sentiment_max_batch_size: int = Field(
        default=100, ge=1, description="Cap applied to requested sub-batch size"
    )
    sentiment_max_conversation_ids: int = Field(
        default=1000, ge=1, description="Maximum conversation ids per sentiment batch request"
    )
    sentiment_chunk_delay_s: float = Field(
        default=1.0, ge=0.0, description="Pause between sub-batches in seconds"
    )
    sentiment_write_batch_size: int = Field(
        default=100, ge=1, description="Rows per conversation sentiment write"
    )

    # External sentiment provider (Google Cloud Natural Language)
    google_language_api_key: Optional[str] = Field(
        default=None, description="Google Cloud Natural Language API key"
    )
    google_language_endpoint: str = Field(
        default="https://language.googleapis.com/v1/documents:analyzeSentiment",
        description="Google Cloud Natural Language analyzeSentiment endpoint",
    )
    sentiment_provider_timeout: float = Field(
        default=15.0, description="External sentiment provider timeout in seconds"
    )

    # Trend analysis service
    trend_service_url: Optional[str] = Field(
        default=None, description="Base URL of the trend analysis service"
    )
    trend_service_api_key: Optional[str] = Field(
        default=None, description="Bearer token for the trend analysis service"
    )
    trend_service_timeout: float = Field(
        default=60.0, description="Trend analysis request timeout in seconds"
    )

    # Retention
    job_retention_completed_days: int = Field(
        default=7, ge=1, description="Days to keep completed jobs before cleanup"
    )
    job_retention_failed_days: int = Field(
        default=30, ge=1, description="Days to keep failed jobs before cleanup"
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(
        default=True, description="Enable rate limiting"
    )
    rate_limit_requests_per_minute: int = Field(
        default=60, description="Maximum requests per minute per IP"
    )

    # Request size limits
    max_request_body_size: int = Field(
        default=1 * 1024 * 1024,  # 1 MB
        description="Maximum request body size in bytes"
    )

    # API Key Authentication
    api_key: Optional[str] = Field(
        default=None,
        description="Optional API key for authentication. If set, all requests must include X-API-Key header"
    )
    api_key_header_name: str = Field(
        default="X-API-Key",
        description="Header name for API key"
    )

    # Sentry Observability
    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking and performance monitoring"
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment tag (development, staging, production)"
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry performance tracing sample rate (0.0-1.0)"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
