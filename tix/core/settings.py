"""
Configuration & Environment Management for Tix
"""

import logging
import secrets
from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings
from pydantic_settings import SettingsConfigDict

logger = logging.getLogger(__name__)

_ENV_CONFIG = SettingsConfigDict(
    env_file=".env", case_sensitive=True, extra="ignore"
)


class DatabaseSettings(PydanticBaseSettings):
    """Database configuration settings"""

    DATABASE_URL: Optional[str] = None

    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_NAME: str = "tix"

    # Connection Pool Settings
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 30
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_POOL_PRE_PING: bool = True
    DB_ECHO: bool = False

    # Connection Timeouts
    DB_COMMAND_TIMEOUT: int = 60
    DB_STATEMENT_TIMEOUT: str = "60s"
    DB_LOCK_TIMEOUT: str = "30s"
    DB_IDLE_IN_TRANSACTION_TIMEOUT: str = "10min"

    model_config = _ENV_CONFIG

    @property
    def database_url(self) -> str:
        """Generate database URL for async connections"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


class RedisSettings(PydanticBaseSettings):
    """Redis configuration settings"""

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_USERNAME: Optional[str] = None

    model_config = _ENV_CONFIG

    @property
    def redis_url(self) -> str:
        """Generate Redis URL"""
        auth = ""
        if self.REDIS_USERNAME and self.REDIS_PASSWORD:
            auth = f"{self.REDIS_USERNAME}:{self.REDIS_PASSWORD}@"
        elif self.REDIS_PASSWORD:
            auth = f":{self.REDIS_PASSWORD}@"

        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class SecuritySettings(PydanticBaseSettings):
    """Security and authentication settings"""

    JWT_SECRET_KEY: str = secrets.token_urlsafe(32)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    PASSWORD_MIN_LENGTH: int = 6

    # Session cookie set at login/register
    SESSION_SECRET_KEY: str = secrets.token_urlsafe(32)
    SESSION_COOKIE_NAME: str = "tix_session"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 7
    SESSION_COOKIE_SECURE: bool = False
    SESSION_COOKIE_SAMESITE: str = "lax"

    model_config = _ENV_CONFIG


class PaymentSettings(PydanticBaseSettings):
    """Payment processor settings"""

    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    PAYMENT_CURRENCY: str = "usd"

    model_config = _ENV_CONFIG


class StorageSettings(PydanticBaseSettings):
    """Image asset storage settings"""

    S3_BUCKET: str = "tix-assets"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: Optional[str] = None
    S3_PUBLIC_BASE_URL: Optional[str] = None
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None

    EVENT_IMAGE_PREFIX: str = "events"
    PROFILE_IMAGE_PREFIX: str = "profile-images"
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/png", "image/gif"]

    model_config = _ENV_CONFIG


class BookingSettings(PydanticBaseSettings):
    """Booking ledger settings"""

    # 0 disables hold expiry
    BOOKING_HOLD_TTL_MINUTES: int = 30
    BOOKING_HOLD_SWEEP_SECONDS: int = 60
    BOOKING_HOLD_SWEEP_BATCH: int = 500
    MAX_TICKETS_PER_BOOKING: int = 20

    model_config = _ENV_CONFIG


class MonitoringSettings(PydanticBaseSettings):
    """Monitoring and observability settings"""

    LOG_LEVEL: str = "INFO"
    ENABLE_PROMETHEUS: bool = True
    SLOW_REQUEST_THRESHOLD: float = 2.0

    model_config = _ENV_CONFIG

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()


class ScalabilitySettings(PydanticBaseSettings):
    """Performance and scalability settings"""

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    AUTH_RATE_LIMIT: str = "10/minute"
    BOOKING_RATE_LIMIT: str = "30/minute"
    UPLOAD_RATE_LIMIT: str = "20/minute"

    # Caching
    CACHE_ENABLED: bool = True
    CACHE_TTL: int = 300
    CACHE_KEY_PREFIX: str = "tix:"

    # Background Tasks
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: List[str] = ["json"]
    CELERY_TIMEZONE: str = "UTC"
    CELERY_ENABLE_UTC: bool = True

    model_config = _ENV_CONFIG


class Settings(PydanticBaseSettings):
    """Main application settings"""

    PROJECT_NAME: str = "Tix"
    VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    TESTING: bool = False

    BACKEND_CORS_ORIGINS: List[str] = []

    database: DatabaseSettings = DatabaseSettings()
    redis: RedisSettings = RedisSettings()
    security: SecuritySettings = SecuritySettings()
    payment: PaymentSettings = PaymentSettings()
    storage: StorageSettings = StorageSettings()
    booking: BookingSettings = BookingSettings()
    monitoring: MonitoringSettings = MonitoringSettings()
    scalability: ScalabilitySettings = ScalabilitySettings()

    model_config = _ENV_CONFIG

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production", "testing"]
        if v not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of {valid_envs}")
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    settings = Settings()
    logger.debug("Settings loaded for environment %s", settings.ENVIRONMENT)
    return settings
