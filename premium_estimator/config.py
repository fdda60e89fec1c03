"""
Application settings.

Loaded from environment variables prefixed with ``ESTIMATOR_``
(e.g. ``ESTIMATOR_RATES_PATH``, ``ESTIMATOR_LOG_LEVEL``).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_RATES_PATH = PACKAGE_DIR / "catalog" / "rates.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ESTIMATOR_", env_file=".env", extra="ignore")

    rates_path: Path = DEFAULT_RATES_PATH

    # Signed session cookie; a random key per process when unset
    session_secret: Optional[str] = None

    log_level: str = "INFO"

    # Result history kept in the session
    history_limit: int = 10
    compare_limit: int = 3


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
