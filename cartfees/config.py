"""
Process configuration using Pydantic Settings.

Every value can be overridden through a CARTFEES_* environment variable.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine and logging settings loaded from the environment."""

    # ── Money ────────────────────────────────────────────
    currency: str = "USD"

    # ── Logging ──────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True

    # ── Engine ───────────────────────────────────────────
    on_reentry: Literal["coalesce", "reject"] = "coalesce"
    max_passes: int = Field(default=3, ge=1)
    cycle_timeout_seconds: float | None = Field(default=None, gt=0)

    # ── Rules ────────────────────────────────────────────
    surcharge_taxable: bool = False
    rules_path: Path | None = None

    model_config = SettingsConfigDict(
        env_prefix="CARTFEES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ("Settings", "get_settings")
