"""Application settings using Pydantic Settings.

Everything is read from environment variables (or ``.env``). The
``store_backend`` switch selects where catalog and progress records live:

- ``memory``: in-process store, for development and tests
- ``http``: the portal REST API for both catalog and progress
- ``cassandra``: progress in Cassandra, catalog still from the portal API
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


StoreBackend = Literal["memory", "http", "cassandra"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="playtrack", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Backend selection
    store_backend: StoreBackend = Field(
        default="memory", description="Where catalog and progress records live"
    )

    # Portal REST API (catalog, and progress for the http backend)
    portal_api_base_url: str = Field(
        default="http://localhost:3000/api", description="Portal REST API base URL"
    )
    portal_api_timeout: float = Field(
        default=10.0, gt=0, description="Portal REST API timeout (seconds)"
    )
    portal_api_token: str | None = Field(
        default=None, description="Bearer token for the portal REST API"
    )

    # Cassandra (progress for the cassandra backend)
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra contact points"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="playtrack", description="Keyspace holding the progress tables"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout (seconds)"
    )

    # Playback tracking
    tracking_sample_interval_seconds: float = Field(
        default=5.0, gt=0, description="Seconds between playback position samples"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_to_file: bool = Field(default=True, description="Write rotating log files")
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="CORS max age")

    @field_validator("portal_api_base_url")
    @classmethod
    def validate_portal_api_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop the trailing slash."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            msg = "portal_api_base_url must be an http(s) URL"
            raise ValueError(msg)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("cassandra_keyspace")
    @classmethod
    def validate_cassandra_keyspace(cls, v: str) -> str:
        # Interpolated into CQL, so only identifier characters are accepted
        if not v.replace("_", "").isalnum():
            msg = "cassandra_keyspace must contain only letters, digits and '_'"
            raise ValueError(msg)
        return v

    @property
    def uses_portal_api(self) -> bool:
        """Check if the catalog is read from the portal REST API."""
        return self.store_backend != "memory"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"

    @property
    def cassandra_configured(self) -> bool:
        """Check if Cassandra credentials are configured."""
        return bool(self.cassandra_username and self.cassandra_password)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
