"""Environment-based configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from sqlalchemy.engine import URL


def resolve_database_url() -> str:
    """Resolve DB connection string.

    Priority:
      1) DATABASE_URL (explicit)
      2) Build from PG* env vars (common Postgres convention)
      3) Fallback to local sqlite
    """

    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit

    host = os.getenv("PGHOST")
    user = os.getenv("PGUSER")
    database = os.getenv("PGDATABASE")

    if host and user and database:
        try:
            port = int(os.getenv("PGPORT") or 5432)
        except ValueError:
            port = 5432

        sslmode = os.getenv("PGSSLMODE", "prefer")
        url = URL.create(
            drivername="postgresql+psycopg2",
            username=user,
            password=os.getenv("PGPASSWORD"),
            host=host,
            port=port,
            database=database,
            query={"sslmode": sslmode} if sslmode else {},
        )
        return url.render_as_string(hide_password=False)

    return "sqlite:///./app.db"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class BaseConfig:
    """Base configuration shared by all environments."""

    APP_ENV: str = os.getenv("APP_ENV", "development")
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret")
    DB_BACKEND: str = (
        os.getenv("DB_BACKEND")
        or ("mongo" if os.getenv("MONGODB_URI") else "sql")
    ).lower().strip()  # "sql" | "mongo"

    # SQL backend
    DATABASE_URL: str = resolve_database_url()

    # Mongo backend
    MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    MONGODB_DB: str = os.getenv("MONGODB_DB", "hemung_board")
    MONGODB_TIMEOUT_MS: int = _env_int("MONGODB_TIMEOUT_MS", 5000)

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Post identifiers: YYYY_MM_DD_HH_<tag>_SSS
    POST_ID_TAG: str = os.getenv("POST_ID_TAG", "HEMUNG")
    POST_ID_MAX_ATTEMPTS: int = _env_int("POST_ID_MAX_ATTEMPTS", 10_000)

    # Empty token disables the admin guard (local development only).
    ADMIN_API_TOKEN: str = os.getenv("ADMIN_API_TOKEN", "")

    DEFAULT_PAGE_SIZE: int = _env_int("DEFAULT_PAGE_SIZE", 10)
    MAX_PAGE_SIZE: int = _env_int("MAX_PAGE_SIZE", 100)


@dataclass(frozen=True)
class DevelopmentConfig(BaseConfig):
    """Development configuration."""

    DEBUG: bool = True


@dataclass(frozen=True)
class ProductionConfig(BaseConfig):
    """Production configuration."""

    DEBUG: bool = False


@dataclass(frozen=True)
class TestingConfig(BaseConfig):
    """In-memory SQLite, used by the test suite."""

    TESTING: bool = True
    DEBUG: bool = False
    DB_BACKEND: str = "sql"
    DATABASE_URL: str = "sqlite://"
    ADMIN_API_TOKEN: str = ""


def get_config() -> type[BaseConfig]:
    """Resolve configuration class based on APP_ENV."""

    env = os.getenv("APP_ENV", "development").lower().strip()
    if env == "production":
        return ProductionConfig
    if env == "testing":
        return TestingConfig
    return DevelopmentConfig
