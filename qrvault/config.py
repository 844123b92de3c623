"""Application configuration using Pydantic Settings.

Reads configuration from environment variables with sensible defaults.
Object-store credentials should be provided via environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # =========================================================================
    # Application
    # =========================================================================
    environment: Literal["prod", "staging", "dev"] = Field(
        default="dev",
        description="Environment name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Public base URL used for verification links and on-demand QR handles",
    )
    railway_environment: str = Field(
        default="",
        description="Set by the hosting platform; any value marks a deployed runtime",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_deployed_runtime(self) -> bool:
        """Whether the process runs on a deployed (read-only filesystem) runtime."""
        return self.environment in ("prod", "staging") or bool(self.railway_environment.strip())

    @computed_field  # type: ignore[prop-decorator]
    @property
    def base_url(self) -> str:
        """App base URL without trailing slash."""
        return self.app_base_url.rstrip("/")

    # =========================================================================
    # Object Store (S3-compatible, e.g. Cloudflare R2)
    # =========================================================================
    r2_endpoint: str = Field(
        default="",
        description="S3-compatible endpoint URL",
    )
    r2_bucket: str = Field(
        default="",
        description="Bucket holding QR artifacts",
    )
    r2_access_key_id: str = Field(
        default="",
        description="Object store access key",
    )
    r2_secret_access_key: str = Field(
        default="",
        description="Object store secret key",
    )
    r2_public_url: str = Field(
        default="",
        description="Public base URL that fronts the bucket",
    )
    r2_region: str = Field(
        default="auto",
        description="Region name passed to the S3 client",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def object_store_configured(self) -> bool:
        """True only when every required object-store value is present.

        Partial configuration counts as unavailable.
        """
        required = (
            self.r2_endpoint,
            self.r2_bucket,
            self.r2_access_key_id,
            self.r2_secret_access_key,
            self.r2_public_url,
        )
        return all(value.strip() for value in required)

    # =========================================================================
    # Local Storage
    # =========================================================================
    local_storage_root: str = Field(
        default="./public",
        description="Root directory for QR artifacts when no object store is configured",
    )

    # =========================================================================
    # Rendering
    # =========================================================================
    qr_font_path: str = Field(
        default="DejaVuSansMono.ttf",
        description="Monospace TrueType font for the serial code band",
    )
    qr_title_font_path: str = Field(
        default="DejaVuSans-Bold.ttf",
        description="TrueType font for the product name band",
    )

    # =========================================================================
    # Database
    # =========================================================================
    database_url_override: str = Field(
        default="",
        alias="DATABASE_URL",
        description="Full SQLAlchemy URL; takes precedence over the db_* fields",
    )
    db_user: str = Field(
        default="qrvault",
        description="Database user",
    )
    db_password: str = Field(
        default="",
        description="Database password",
    )
    db_name: str = Field(
        default="qrvault",
        description="Database name",
    )
    db_host: str = Field(
        default="localhost",
        description="Database host",
    )
    db_port: int = Field(
        default=5432,
        description="Database port",
    )
    db_pool_size: int = Field(
        default=5,
        description="Database connection pool size",
    )
    db_pool_max_overflow: int = Field(
        default=10,
        description="Max overflow connections beyond pool size",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Build the async database URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # =========================================================================
    # Serial Allocation
    # =========================================================================
    allocation_max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts to allocate a serial range before giving up on conflicts",
    )

    # =========================================================================
    # Logging
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_json: bool = Field(
        default=True,
        description="Output logs as JSON",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for convenience
settings = get_settings()
