"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

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

    # Application
    app_name: str = Field(default="learnpath", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Storage
    storage_backend: Literal["memory", "cassandra"] = Field(
        default="memory", description="Persistence adapter used by the engine"
    )
    storage_read_retry_attempts: int = Field(
        default=2, ge=1, description="Attempts for read paths (1 = no retry)"
    )
    storage_read_retry_wait_seconds: float = Field(
        default=0.05, ge=0, description="Pause before retrying a failed read"
    )
    storage_cas_max_attempts: int = Field(
        default=5, ge=1, description="Compare-and-set attempts per progress update"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="learnpath", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )
    cassandra_request_timeout: float = Field(
        default=5.0, description="Request timeout"
    )

    # Progress
    progress_completion_ratio: float = Field(
        default=0.95,
        gt=0,
        le=1,
        description="Fraction of the video that must be watched to complete it",
    )
    autosave_interval_seconds: float = Field(
        default=30.0, gt=0, description="Watch session autosave period"
    )

    # Quizzes
    quiz_default_time_limit_seconds: int = Field(
        default=60, gt=0, description="Time limit used when a question has none"
    )
    quiz_session_idle_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Open quiz sessions untouched this long are dropped",
    )

    # Aggregation
    aggregation_related_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Budget for a related-rows batch fetch before placeholders",
    )

    # Certificates
    certificate_verify_base_url: str = Field(
        default="http://localhost:8000/verify",
        description="Public verification page, certificate id is appended",
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
    def uses_cassandra(self) -> bool:
        """Check if the Cassandra adapter is selected."""
        return self.storage_backend == "cassandra"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
