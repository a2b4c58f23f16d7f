from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field
try:
    from dotenv import load_dotenv
    load_dotenv()
except Exception:
    # .env loading is optional; ignore if dotenv is unavailable
    pass


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    app_name: str = Field(default_factory=lambda: os.getenv("APP_NAME", "milestone-db"))
    app_version: str = Field(default_factory=lambda: os.getenv("APP_VERSION", "0.1.0"))

    mongo_url: str = Field(
        default_factory=lambda: os.getenv("MONGO_URL", "mongodb://localhost:27017/milestones")
    )
    mongo_timeout_ms: int = Field(default_factory=lambda: int(os.getenv("MONGO_TIMEOUT_MS", "5000")))

    # Creating indexes on a large unindexed collection can lock the database;
    # operators managing indexes out of band should turn this on.
    disable_index_creation: bool = Field(
        default_factory=lambda: _env_flag("MILESTONE_DISABLE_INDEX_CREATION")
    )
    milestone_interval: int = Field(default_factory=lambda: int(os.getenv("MILESTONE_INTERVAL", "1000")))

    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


@lru_cache
def get_settings() -> Settings:
    return Settings()
