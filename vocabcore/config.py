"""
Centralized configuration management for vocabcore.
"""
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import REFERENCE_TIMEZONE
from .day_key import DayKeyFn, make_day_key_fn
from .models import SchedulerOptions

# --- Path Configuration ---


def get_default_db_path() -> Path:
    """Returns the default path for the progress database file."""
    return Path.home() / ".vocabcore" / "progress.db"


class Settings(BaseSettings):
    """
    Defines application settings, loaded from environment variables or .env files.

    Every field can be overridden with a VOCABCORE_ prefixed variable, e.g.
    VOCABCORE_DB_PATH or VOCABCORE_OPTIONS__MAX_NEW_CARDS_PER_DAY.
    """
    model_config = SettingsConfigDict(
        env_prefix="VOCABCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # --- Core Paths ---
    db_path: Path = Field(default_factory=get_default_db_path)

    # YAML vocabulary catalog used by the study commands.
    catalog_path: Optional[Path] = None

    # --- Learner Configuration ---
    learner_id: str = "default"

    # The study day boundary for every learner.
    reference_timezone: str = REFERENCE_TIMEZONE

    # --- Scheduler Configuration ---
    options: SchedulerOptions = Field(default_factory=SchedulerOptions)

    @field_validator("reference_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        make_day_key_fn(v)
        return v

    def day_key_fn(self) -> DayKeyFn:
        """The day-key function for the configured reference timezone."""
        return make_day_key_fn(self.reference_timezone)


# Create a singleton instance of the settings
settings = Settings()
