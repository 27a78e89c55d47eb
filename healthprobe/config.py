"""Probe configuration management via pydantic-settings.

Load the probe defaults (target URL, timeout) and logging parameters from
environment variables and/or a `.env` file. Command-line flags take
precedence over every value defined here.
"""

from functools import lru_cache
from typing import Literal

from pydantic import PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_URL = "http://localhost:3001/"
DEFAULT_TIMEOUT = 3


class Settings(BaseSettings):
    """Probe-wide configuration settings.

    Attributes:
        HEALTHCHECK_URL: Default target URL for the probe.
        HEALTHCHECK_TIMEOUT: Default upper bound on the request, in seconds.
        ENVIRONMENT: Deployment environment identifier, selects the log renderer.
        LOG_LEVEL: Minimum logging verbosity level.
        LOGGING_NOISY_MODULES: Third-party loggers pinned to WARNING.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # ==========================================================================
    # PROBE TARGET
    # ==========================================================================
    HEALTHCHECK_URL: str = DEFAULT_URL
    HEALTHCHECK_TIMEOUT: PositiveInt = DEFAULT_TIMEOUT

    # ==========================================================================
    # ENVIRONMENT & LOGGING
    # ==========================================================================
    # The default level keeps stderr reserved for the probe's own messages.
    ENVIRONMENT: Literal["development", "staging", "production"] = "production"
    LOG_LEVEL: Literal["debug", "info", "warning", "error", "critical"] = "warning"
    LOGGING_NOISY_MODULES: list[str] = [
        "httpx",
        "httpcore",
    ]

    @field_validator("HEALTHCHECK_URL")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Reject blank target URLs.

        Args:
            v: The HEALTHCHECK_URL value to validate.

        Returns:
            The URL with surrounding whitespace removed.

        Raises:
            ValueError: If the URL is empty or whitespace only.
        """
        v = v.strip()
        if not v:
            raise ValueError("HEALTHCHECK_URL must not be empty.")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return a cached singleton instance of the probe settings.

    Returns:
        The singleton Settings instance.
    """
    return Settings()
