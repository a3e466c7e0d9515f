"""Settings for stepify.

Configuration is loaded from:
- environment variables (``STEPIFY_`` prefix)
- and a local `.env` file (if present)
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stepify.logging import configure_logging


class StepifySettings(BaseSettings):
    """Settings for workflows and the ``stepify`` CLI.

    Environment variables:
    - STEPIFY_LOG_LEVEL   (optional)
    - STEPIFY_LOG_FORMAT  (optional, ``json`` or ``text``)
    - STEPIFY_DEBUG       (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `StepifySettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log record rendering",
    )
    debug: bool = Field(
        default=False,
        description="Trace step completions, jumps and task ends",
    )

    model_config = SettingsConfigDict(
        env_prefix="STEPIFY_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}:
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging(self.log_level, self.log_format, debug=self.debug)
