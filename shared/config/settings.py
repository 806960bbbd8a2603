"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Data core settings with defaults for development."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data_core.db"
    sql_echo: bool = False

    # Connection pool (ignored for SQLite URLs)
    db_pool_size: int = 10
    db_max_overflow: int = 15
    db_pool_timeout: int = 30  # Wait max 30s for a connection from the pool
    db_pool_recycle: int = 1800  # Recycle connections after 30 minutes

    # Environment
    environment: str = "development"
    debug: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "DATA_CORE_"
        case_sensitive = False

    @property
    def is_sqlite(self) -> bool:
        """True when the configured store is SQLite."""
        return self.database_url.startswith("sqlite")

    def validate_production_settings(self) -> list[str]:
        """
        Validate settings that must not keep development values in production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if self.sql_echo:
                errors.append("SQL_ECHO must be False in production (statements may contain PII)")

            if self.is_sqlite:
                errors.append(
                    "DATABASE_URL points to SQLite; production needs a server-backed relational store"
                )

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()

DATABASE_URL = settings.database_url
