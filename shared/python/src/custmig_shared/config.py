"""
config.py — pydantic-settings Settings class.

All environment variables for the custmig migration are declared here.
The pipeline, its CLI and the storage helpers import `settings` from this module.

Usage:
    from custmig_shared.config import settings
    print(settings.mongo_uri)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Source store (MongoDB or a mongoexport JSON-lines file)
    # -------------------------------------------------------------------------
    source_kind: Literal["mongo", "jsonl"] = Field(default="mongo")
    mongo_uri: str = Field(default="mongodb://localhost:27017")
    mongo_database: str = Field(default="techtest")
    mongo_collection: str = Field(default="customers")
    source_file: str = Field(default="./data/customers.jsonl")
    source_field_map: Literal["en", "es"] = Field(default="en")

    # -------------------------------------------------------------------------
    # Target store
    # -------------------------------------------------------------------------
    target_kind: Literal["duckdb", "supabase"] = Field(default="duckdb")
    duckdb_path: str = Field(default="./data/target.duckdb")
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_service_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # Supervision
    # -------------------------------------------------------------------------
    retry_max_attempts: int = Field(default=3)
    retry_base_delay: float = Field(default=2.0)     # seconds
    retry_multiplier: float = Field(default=2.0)
    retry_max_delay: float = Field(default=60.0)     # seconds
    probe_timeout: float = Field(default=5.0)        # seconds

    # -------------------------------------------------------------------------
    # Dead letters
    # -------------------------------------------------------------------------
    dead_letter_path: str = Field(default="./data/dead_letters.jsonl")

    # -------------------------------------------------------------------------
    # Trigger schedule
    # -------------------------------------------------------------------------
    schedule_delay: float = Field(default=30.0)      # seconds before first run
    schedule_period: float = Field(default=30.0)     # seconds between runs
    schedule_repeat_count: int = Field(default=1)    # 0 = run forever

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    @field_validator("retry_max_attempts")
    @classmethod
    def positive_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry_max_attempts must be at least 1")
        return v

    @field_validator("retry_base_delay", "retry_multiplier", "probe_timeout")
    @classmethod
    def positive_float(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("supabase_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton — import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
