"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mlm_app.config.constants import (
    DOWNLINE_CACHE_TTL_SECONDS,
    LAST_KNOWN_CACHE_TTL_SECONDS,
    STORE_MAX_RETRIES,
    STORE_RETRY_BASE_DELAY,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (downline and transaction caches)
    redis_host: str = "localhost"
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/mlm.log"
    public_base_url: str = Field(
        default="http://localhost:5173",
        description="Origin used when building ?ref= referral links",
    )

    # Read caches
    downline_cache_ttl: int = Field(
        default=DOWNLINE_CACHE_TTL_SECONDS,
        gt=0,
        description="Freshness window for cached downline reads (seconds)",
    )
    last_known_cache_ttl: int = Field(
        default=LAST_KNOWN_CACHE_TTL_SECONDS,
        gt=0,
        description="How long a degraded read may fall back to old data (seconds)",
    )

    # Transient store failures
    store_max_retries: int = Field(default=STORE_MAX_RETRIES, ge=1, le=10)
    store_retry_base_delay: float = Field(
        default=STORE_RETRY_BASE_DELAY, ge=0,
        description="Base delay for exponential backoff (seconds)",
    )

    # Payment gateway
    payment_gateway_url: str = "https://api.razorpay.com/v1"
    payment_key_id: str | None = None
    payment_key_secret: str | None = None
    payment_currency: str = "INR"
    payment_timeout: float = Field(default=15.0, gt=0)

    # Email notifications
    smtp_host: str | None = None
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    email_from: str | None = None

    # SMS notifications
    sms_api_url: str = "https://api.twilio.com/2010-04-01"
    sms_account_sid: str | None = None
    sms_auth_token: str | None = None
    sms_from_number: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL uses an async driver."""
        allowed = (
            "postgresql+asyncpg://",
            "sqlite+aiosqlite://",
        )
        if v.startswith("postgresql://"):
            # asyncpg is the only PostgreSQL driver we ship
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if not v.startswith(allowed):
            raise ValueError(
                "DATABASE_URL must start with postgresql+asyncpg:// "
                "or sqlite+aiosqlite://"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def warn_missing_integrations(self) -> "Settings":
        """Warn (don't fail) when optional integrations are half-configured."""
        if self.environment == "production":
            if bool(self.payment_key_id) != bool(self.payment_key_secret):
                logger.warning(
                    "Payment gateway is half-configured: "
                    "set both PAYMENT_KEY_ID and PAYMENT_KEY_SECRET"
                )
            if self.smtp_host and not self.email_from:
                logger.warning("SMTP_HOST is set but EMAIL_FROM is empty")
        return self

    @property
    def payment_enabled(self) -> bool:
        return bool(self.payment_key_id and self.payment_key_secret)

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.email_from)

    @property
    def sms_enabled(self) -> bool:
        return bool(
            self.sms_account_sid and self.sms_auth_token and self.sms_from_number
        )


# Global settings instance
settings = Settings()
