"""Application configuration management."""
from pydantic import model_validator, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine.url import make_url, URL
from typing import Optional
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./mapveto.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Application
    environment: str = "development"
    frontend_url: str = "http://localhost:3000"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Blob storage used to resolve map images stored by reference
    storage_base_url: str = ""

    # Session lifetimes
    session_expiry_days: int = 14  # Sessions expire two weeks after creation
    token_expiry_hours: int = 24  # Player access tokens are valid for one day
    token_generation_max_attempts: int = 2  # Initial attempt plus one retry on collision

    # Session configuration limits
    max_name_length: int = 100
    default_turn_timer_seconds: int = 30
    min_turn_timer_seconds: int = 10
    max_turn_timer_seconds: int = 300
    default_map_pool_size: int = 5
    min_map_pool_size: int = 3
    max_map_pool_size: int = 15
    min_player_count: int = 2
    max_player_count: int = 8

    # Maintenance (expiry and IP clearing run outside the engine)
    session_maintenance_enabled: bool = True
    session_maintenance_interval_minutes: int = 60

    # Audit log reads
    audit_log_default_limit: int = 50
    audit_log_max_limit: int = 100

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        """Parse comma-separated CORS origins from environment variables."""
        if value is None:
            return cls.model_fields["cors_origins"].default
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate configuration ranges and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        ranges = [
            ("turn_timer_seconds", self.min_turn_timer_seconds,
             self.default_turn_timer_seconds, self.max_turn_timer_seconds),
            ("map_pool_size", self.min_map_pool_size,
             self.default_map_pool_size, self.max_map_pool_size),
        ]
        for name, minimum, default, maximum in ranges:
            if not minimum <= default <= maximum:
                raise ValueError(
                    f"{name} default {default} must be between {minimum} and {maximum}"
                )

        if self.min_player_count < 2 or self.min_player_count > self.max_player_count:
            raise ValueError("min_player_count must be at least 2 and not exceed max_player_count")

        if self.session_expiry_days < 1:
            raise ValueError("session_expiry_days must be at least 1 day")

        if self.token_expiry_hours < 1 or self.token_expiry_hours > 24 * 30:
            raise ValueError("token_expiry_hours must be between 1 and 720")

        if self.token_generation_max_attempts < 1:
            raise ValueError("token_generation_max_attempts must be at least 1")

        if self.session_maintenance_interval_minutes < 1:
            raise ValueError("session_maintenance_interval_minutes must be at least 1 minute")

        # Database URL normalization
        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:  # pragma: no cover
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            logger.warning("Invalid DATABASE_URL; falling back to default sqlite database.")
            self.database_url = SQLITE_LOCAL_URL
            return self

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            old_drivername = drivername
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {old_drivername} -> {parsed.drivername}")
        # Use render_as_string to properly re-encode special characters in password
        self.database_url = parsed.render_as_string(hide_password=False)

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
