"""
Configuration settings for Curtain cross-dataset search.
"""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CurtainSettings(BaseSettings):
    """Configuration settings for the search engine and its command line."""

    model_config = SettingsConfigDict(
        env_prefix="CURTAIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    data_dir: str = Field("./curtain_data", description="Root directory holding one folder per dataset")
    saved_search_db: str = Field(
        str(Path.home() / ".curtain" / "saved_searches.db"),
        description="SQLite file for saved searches",
    )

    # Search execution
    max_workers: int = Field(4, ge=1, description="Datasets searched in parallel")

    # Significance defaults for datasets that do not carry their own settings
    default_p_cutoff: float = Field(0.05, gt=0)
    default_log2fc_cutoff: float = Field(0.6, ge=0)

    # Development Settings
    log_level: str = Field("WARNING")
    log_dir: str = Field("", description="Write log files here when set")


@lru_cache(maxsize=1)
def get_settings() -> CurtainSettings:
    """Return the global settings object."""
    return CurtainSettings()
