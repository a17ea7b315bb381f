# backend/homeservice/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

_DEFAULT_SECRET_KEY = SecretStr("dev-only-secret-key-change-me")

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")
    database_url: str = Field(
        default="sqlite:///./homeservice.db",
        description="SQLAlchemy database URL",
    )
    redis_url: str = "redis://localhost:6379"

    # Bearer tokens carrying the actor are signed with this key
    secret_key: SecretStr = Field(default=_DEFAULT_SECRET_KEY, description="Secret key for JWT tokens")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720

    log_level: str = Field(default="INFO", description="Root log level for the API process")
    is_testing: bool = Field(default_factory=is_running_tests)
    auto_create_tables: bool = Field(
        default=False,
        description="Run create_all on startup (local SQLite development)",
    )
    cors_allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Rating aggregator
    rating_recompute_max_attempts: int = Field(
        default=3,
        description="In-request attempts before a recompute is left to the reconciler",
    )
    rating_recompute_backoff_seconds: float = Field(
        default=0.2,
        description="Base delay between in-request recompute attempts (doubled per attempt)",
    )
    rating_reconcile_batch_size: int = 200
    rating_reconcile_interval_seconds: int = 60
    rating_reconcile_max_backoff_seconds: int = 3600

    # Per-provider serialization of aggregate write-back
    rating_lock_backend: Literal["local", "redis"] = Field(
        default="local",
        description="Use a Redis lock in addition to the in-process lock",
    )
    rating_lock_ttl_seconds: int = 30
    rating_lock_wait_seconds: float = 10.0
    lock_namespace: str = "homeservice"

    # Field bounds
    review_comment_max_length: int = 500
    booking_notes_max_length: int = 500

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("rating_recompute_max_attempts")
    @classmethod
    def _validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rating_recompute_max_attempts must be at least 1")
        return v

    @field_validator("rating_recompute_backoff_seconds", "rating_lock_wait_seconds")
    @classmethod
    def _validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v


settings = Settings()
