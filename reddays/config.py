"""Application configuration loaded from environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file).

    Variables are prefixed with ``REDDAYS_``, e.g. ``REDDAYS_DATABASE_PATH``.
    """

    # --- App ---
    app_name: str = "RedDays"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | test | production

    # --- Local store ---
    database_path: Path = Path("reddays.db")
    auto_migrate: bool = True  # apply schema on first connect

    # --- Statistics tuning ---
    stats_config_path: Path | None = None  # defaults to the bundled stats_config.yaml

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "REDDAYS_",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()
