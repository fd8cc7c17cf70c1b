"""Environment settings for vrunas."""

import logging
import os

from pydantic import BaseModel, field_validator

DEBUG_ENV = "VRUNAS_DEBUG"
LOG_LEVEL_ENV = "VRUNAS_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime settings taken from the environment."""

    debug: bool = False
    log_level: str = DEFAULT_LOG_LEVEL

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        name = value.strip().upper()
        if not isinstance(logging.getLevelName(name), int):
            return DEFAULT_LOG_LEVEL
        return name

    def effective_level(self, debug: bool = False) -> int:
        """Return the numeric logging level, honoring a debug override."""
        if debug or self.debug:
            return logging.DEBUG
        return logging.getLevelName(self.log_level)


def load_settings() -> Settings:
    """Build settings from VRUNAS_* environment variables."""
    debug = os.environ.get(DEBUG_ENV, "").strip().lower() in _TRUE_VALUES
    log_level = os.environ.get(LOG_LEVEL_ENV, "").strip() or DEFAULT_LOG_LEVEL
    return Settings(debug=debug, log_level=log_level)
