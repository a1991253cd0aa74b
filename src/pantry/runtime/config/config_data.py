"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, computed_field


class CORSConfig(BaseModel):
    """CORS configuration for the application."""

    origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5000"]
    )
    allow_credentials: bool = False
    allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    allow_headers: list[str] = Field(default=["*"])


class RedisConfig(BaseModel):
    """Redis configuration model."""

    enabled: bool = Field(default=False, description="Enable Redis storage backend")
    url: str = Field(default="", description="Redis connection URL")
    password: str | None = Field(
        default=None, description="Password for Redis authentication"
    )
    decode_responses: bool = Field(
        default=True, description="Decode Redis responses to strings"
    )

    @computed_field
    @property
    def connection_string(self) -> str:
        """Construct the Redis connection string with password if provided."""
        if self.password:
            if "@" in self.url:
                # URL already has auth info
                return self.url
            parts = self.url.split("://", 1)
            if len(parts) == 2:
                scheme, rest = parts
                return f"{scheme}://:{self.password}@{rest}"
        return self.url


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="plain", description="Log format")
    file: str = Field(default="logs/app.log", description="Log file path")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class DatabaseConfig(BaseModel):
    """Database configuration model."""

    url: str = Field(
        default="sqlite:///./products.db",
        description="Database connection URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Pool recycle time in seconds")

    @computed_field
    @property
    def connection_string(self) -> str:
        """Normalize the URL into a synchronous SQLAlchemy connection string."""
        from sqlalchemy.engine import make_url

        url = make_url(self.url)
        if url.drivername in ("postgresql+asyncpg", "postgres"):
            url = url.set(drivername="postgresql")
        return url.render_as_string(hide_password=False)


class SyncConfig(BaseModel):
    """Offline sync client configuration."""

    api_base_url: str = Field(
        default="http://localhost:8000", description="Base URL of the product API"
    )
    timeout_seconds: float = Field(
        default=2.0, description="Upper bound for a single remote call"
    )
    storage_backend: Literal["memory", "file", "redis"] = Field(
        default="file", description="Key-value backend for the local cache and outbox"
    )
    storage_path: str = Field(
        default=".pantry/storage.json", description="File used by the file backend"
    )
    products_key: str = Field(
        default="products_offline", description="Storage key of the product cache"
    )
    queue_key: str = Field(
        default="sync_queue", description="Storage key of the pending-operation queue"
    )
    conflict_policy: Literal["local_wins", "server_wins", "pending_wins"] = Field(
        default="pending_wins",
        description="Which copy survives when server and cache hold the same id",
    )
    max_attempts: int = Field(
        default=5,
        ge=1,
        description="Replay attempts after which an entry is reported as stalled",
    )
    poll_interval_seconds: float = Field(
        default=5.0, description="Connectivity watcher polling interval"
    )


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    host: str = Field(default="localhost", description="Application host")
    port: int = Field(default=8000, description="Application port")
    cors: CORSConfig = Field(
        default_factory=CORSConfig, description="CORS configuration"
    )

    @property
    def base_url(self) -> str:
        """Construct the base URL from host and port."""
        scheme = "https" if self.environment == "production" else "http"
        return f"{scheme}://{self.host}:{self.port}"


class ConfigData(BaseModel):
    """Root configuration model that matches the config.yaml structure."""

    redis: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    sync: SyncConfig = Field(
        default_factory=SyncConfig, description="Offline sync client configuration"
    )
    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
