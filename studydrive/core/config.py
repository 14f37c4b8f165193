"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List

GIB = 1024 * 1024 * 1024
MIB = 1024 * 1024


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every limit the storage engine enforces lives here so deployments can
    tune quotas, rate limits, and timeouts through environment variables.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./studydrive.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(default=5, description="Number of persistent database connections")
    db_max_overflow: int = Field(default=10, description="Extra connections allowed during traffic bursts")
    db_pool_timeout: int = Field(default=30, description="Seconds to wait for a pooled connection")
    db_pool_recycle: int = Field(default=1800, description="Seconds before a connection is recycled")

    # Content store
    storage_root: str = Field(
        default="./uploads",
        description="Filesystem directory that holds uploaded bytes and thumbnails"
    )

    # Quotas and limits
    default_storage_limit: int = Field(default=10 * GIB, description="Bytes a new drive may store")
    max_file_size: int = Field(default=500 * MIB, description="Largest accepted single file, in bytes")
    default_bandwidth_limit: int = Field(
        default=10 * GIB,
        description="Bytes other users may download from a drive per UTC day"
    )
    trash_retention_days: int = Field(
        default=30,
        description="Days an item stays in trash before it is purged (0 = keep forever)"
    )
    max_folder_depth: int = Field(default=32, description="Deepest allowed folder nesting")
    max_tags: int = Field(default=20, description="Maximum tags per file")
    max_tag_length: int = Field(default=50, description="Maximum characters per tag")

    # External collaborators
    fetch_timeout_seconds: float = Field(default=30.0, description="Timeout for save-from-url downloads")
    thumbnail_timeout_seconds: float = Field(default=10.0, description="Timeout for thumbnail generation")

    # Rate Limiting (requests per user per window, per operation class)
    rate_limit_window_seconds: int = Field(default=60)
    rate_limit_file_upload: int = Field(default=50)
    rate_limit_folder_create: int = Field(default=20)
    rate_limit_file_delete: int = Field(default=50)
    rate_limit_api_call: int = Field(default=100)
    rate_limit_search: int = Field(default=30)

    # Authentication boundary
    # AUTH_ENABLED=false trusts the X-User-Id header (development only).
    jwt_secret_key: str = Field(
        default="dev-insecure-key-change-me",
        description="Secret shared with the auth service for bearer tokens"
    )
    jwt_algorithm: str = Field(default="HS256")
    auth_enabled: bool = Field(
        default=False,
        description="Require signed bearer tokens (False for development)"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """Get CORS origins as a list. Wildcards are rejected."""
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('max_folder_depth', 'max_tags', 'max_tag_length')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Must be at least 1")
        return v

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if self.jwt_secret_key == "dev-insecure-key-change-me":
            errors.append(
                "JWT_SECRET_KEY is using the default insecure value. "
                "Generate a secure key: openssl rand -hex 32"
            )

        if not self.auth_enabled:
            errors.append(
                "AUTH_ENABLED is false. "
                "The X-User-Id header must not be trusted in production."
            )

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
