"""Settings for the stress-lab engine.

Configuration is explicit, validated, and environment-driven: every field
can be overridden with a ``STRESSLAB_``-prefixed environment variable or a
``.env`` file, and unknown variables are ignored.

Fields
──────
log_level     : structlog level
log_json      : JSON renderer (True), console (False), auto-detect (None)
service_name  : ``service.name`` stamped on every log line
run_channel   : prefix of generated run ids (``<channel>:<tenant>:<ms>``)
namespace     : plugin namespace shared by the stage catalog

Examples:
    >>> settings = StressLabSettings(run_channel="drill")
    >>> settings.run_channel
    'drill'
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from stresslab.core.errors import ConfigError
from stresslab.core.logging import configure_logging


class StressLabSettings(BaseSettings):
    """Engine settings read from ``STRESSLAB_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STRESSLAB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None
    service_name: str = "stresslab"

    # ── Workflow ─────────────────────────────────────────────────
    run_channel: str = Field(default="run", min_length=1)
    namespace: str = Field(
        default="recovery:stress:lab:advanced-workflow",
        description="Namespace stamped on every stage plugin",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def configure_logging(self) -> None:
        """Apply the logging fields to structlog."""
        configure_logging(
            level=self.log_level,
            json_format=self.log_json,
            service=self.service_name,
        )


@lru_cache(maxsize=1)
def get_settings() -> StressLabSettings:
    """Return the process-wide settings (cached after first read).

    Raises:
        ConfigError: If the environment holds invalid values
    """
    try:
        return StressLabSettings()
    except PydanticValidationError as e:
        raise ConfigError(f"invalid stresslab settings: {e.error_count()} error(s)", cause=e) from e
