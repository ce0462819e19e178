"""Settings loader for the Stamina Bar project.

Configuration is read with :mod:`pydantic-settings` from environment
variables and an optional ``.env`` file at the repository root.

The :func:`reset_settings` helper can be used in tests to reload
configuration after modifying environment variables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(ENV_PATH)
# Default to the repository root when BASE_DIR isn't configured
DEFAULT_BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application configuration values."""

    model_config = SettingsConfigDict(env_file=ENV_PATH, extra="ignore")

    BASE_DIR: Path = DEFAULT_BASE_DIR
    POLL_INTERVAL: float = 20.0
    """Seconds between metric refresh ticks while a workout is running."""

    POLL_OVERLAP: Literal["coalesce", "restart", "overlap"] = "coalesce"
    """What to do when a metric request is still in flight on the next tick."""

    LOG_LEVEL: str = "INFO"
    STAMINA_ACCESS_LOG: bool = False
    HR_STRAP_MAC: Optional[str] = None
    """Bluetooth address of a heart-rate strap, e.g. "A0:9E:1A:EB:9C:A5"."""

    DEFAULT_LOCATION: Literal["indoor", "outdoor"] = "outdoor"


def get_settings() -> "Settings":
    """Return the current settings, honouring any :func:`reset_settings` call."""

    return settings


def reset_settings() -> None:
    """Reload configuration from the environment and ``.env`` file."""

    global settings
    settings = Settings()


# Global settings instance used throughout the application
settings = Settings()


__all__ = ["Settings", "settings", "get_settings", "reset_settings"]
