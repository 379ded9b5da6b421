"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, RedisDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Pending second-factor logins may never outlive this many seconds
MAX_PENDING_LOGIN_TTL_SECONDS = 600

# Work factor below which bcrypt no longer resists offline brute force
MIN_BCRYPT_ROUNDS = 10


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Portal Auth API"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # Database (required - no default for security)
    database_url: str = Field(
        description="Database connection URL. Must be set via environment variable."
    )
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Redis (HTTP request throttling storage)
    redis_url: RedisDsn | None = None

    # Security - Encryption of TOTP secrets at rest
    encryption_key: str = Field(min_length=32)
    # Legacy keys for decryption during key rotation (comma-separated, oldest to newest)
    encryption_key_legacy: str = ""

    # Security - Sessions
    session_ttl_seconds: int = Field(default=3600, gt=0)
    pending_login_ttl_seconds: int = Field(default=600, gt=0)

    # Security - Login attempt limiting (per account and origin)
    login_attempt_window_minutes: int = Field(default=15, gt=0)
    max_failed_login_attempts: int = Field(default=5, gt=0)
    attempt_log_retention_hours: int = 24

    # Security - Second factor
    totp_valid_window: int = Field(default=1, ge=0, le=2)
    backup_code_count: int = Field(default=10, gt=0)

    # Security - Password hashing
    bcrypt_rounds: int = 12

    # Maintenance
    cleanup_interval_minutes: int = 15

    # CORS settings
    cors_origins: str = "http://localhost:3000"  # Comma-separated list

    # Trusted proxies for rate limiting (comma-separated IP/CIDR ranges)
    trusted_proxies: str = ""

    # HTTP rate limiting settings (requests per minute per client IP)
    rate_limit_enabled: bool = True
    rate_limit_default: int = 100
    rate_limit_auth_login: int = 10
    rate_limit_auth_second_factor: int = 10
    rate_limit_auth_logout: int = 20
    rate_limit_sensitive: int = 5

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings for security requirements."""
        # Security: Prevent debug mode in production
        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG mode cannot be enabled in production environment. "
                "This would expose API documentation and detailed error messages."
            )

        if self.environment == "production":
            if not self.database_url.startswith(("postgresql://", "postgres://")):
                raise ValueError(
                    "DATABASE_URL must be a PostgreSQL URL starting with "
                    "'postgresql://' or 'postgres://' in production"
                )
            if self.redis_url is None:
                raise ValueError(
                    "REDIS_URL must be configured in production for distributed rate limiting."
                )

        if self.pending_login_ttl_seconds > MAX_PENDING_LOGIN_TTL_SECONDS:
            raise ValueError(
                f"PENDING_LOGIN_TTL_SECONDS must not exceed {MAX_PENDING_LOGIN_TTL_SECONDS}"
            )

        if self.bcrypt_rounds < MIN_BCRYPT_ROUNDS:
            raise ValueError(f"BCRYPT_ROUNDS must be at least {MIN_BCRYPT_ROUNDS}")

        return self

    @property
    def async_database_url(self) -> str:
        """Get async database URL for SQLAlchemy.

        PostgreSQL URLs are switched to the asyncpg driver, with sslmode
        converted to ssl for asyncpg compatibility. Other URLs (sqlite+aiosqlite
        in development and tests) are returned unchanged.
        """
        url = self.database_url
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            url = url.replace("sslmode=", "ssl=")
        return url

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return self.database_url.startswith("sqlite")

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def trusted_proxies_list(self) -> list[str]:
        """Get trusted proxies as a list."""
        if not self.trusted_proxies:
            return []
        return [proxy.strip() for proxy in self.trusted_proxies.split(",") if proxy.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
