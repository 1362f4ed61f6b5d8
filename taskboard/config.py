from __future__ import annotations

import os
from dataclasses import dataclass, field


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./taskboard.db"
    # seconds a SQLite writer waits for the database lock before giving up
    sqlite_busy_timeout: float = 5.0
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = field(default_factory=list)


def get_settings() -> Settings:
    """Build settings from the process environment."""
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./taskboard.db"),
        sqlite_busy_timeout=float(os.getenv("SQLITE_BUSY_TIMEOUT", "5")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        cors_origins=_split(os.getenv("CORS_ORIGINS", "")),
    )
