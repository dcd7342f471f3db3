# config.py

"""Settings for the cafe console.

``config.json`` next to this file supplies the deployed values; any field can
be overridden by an environment variable of the same name in upper case.
Mapping fields such as ``FEATURED_LIMITS`` take a JSON object.
"""

from __future__ import annotations

import json
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreBackend(str, Enum):
    """Which document store adapter backs the console.

    ``REDIS`` keeps each collection as JSON keys indexed by a sorted set;
    ``SQL`` keeps JSON rows in one SQLAlchemy table.
    """

    REDIS = "redis"
    SQL = "sql"


class Settings(BaseSettings):
    """Runtime settings for stores, paging, commits and logging."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    store_backend: StoreBackend = StoreBackend.REDIS
    redis_url: str = "redis://localhost:6379/0"
    database_url: str = "sqlite+aiosqlite:///./cafe_store.db"
    page_size: int = 5
    max_page_size: int = 100
    commit_timeout_secs: float = 10.0
    featured_limits: dict[str, int] = {"products": 6, "offers": 6, "reviews": 3}
    featured_remote_check: bool = True
    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("commit_timeout_secs")
    @classmethod
    def _timeout_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("commit_timeout_secs must be positive")
        return value

    @field_validator("featured_limits")
    @classmethod
    def _limits_non_negative(cls, value: dict[str, int]) -> dict[str, int]:
        bad = sorted(name for name, limit in value.items() if limit < 0)
        if bad:
            raise ValueError(f"negative featured limit for {', '.join(bad)}")
        return value


def _decode_env(value: str):
    if value[:1] in ("{", "["):
        return json.loads(value)
    return value


@lru_cache
def get_settings() -> Settings:
    """Load ``config.json`` once and apply environment overrides on top."""

    path = Path(__file__).with_name("config.json")
    file_values = json.loads(path.read_text()) if path.exists() else {}
    overrides = {
        key.lower(): _decode_env(raw)
        for key, raw in os.environ.items()
        if key.lower() in Settings.model_fields
    }
    return Settings(**{**file_values, **overrides})
