"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Scheduler configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/assignments.db"))

    # Institution-wide wall clock used for every publish time
    institution_timezone: str = Field(default="Africa/Cairo")

    # Materialization
    lookahead_count: int = Field(default=28)
    max_scan_days: int = Field(default=120)

    # Driver cadence
    materialize_interval_minutes: int = Field(default=60)
    post_interval_minutes: int = Field(default=5)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
