"""Configuration loader for agrolink.

Parses YAML files with the following top-level sections::

    client:      # generative-AI endpoint, models, retry policy
    session:     # tick / sweep intervals, audit source, fallback location
    log_level:   # DEBUG, INFO, WARNING, ERROR

Example:

.. code-block:: yaml

    client:
      flash_model: gemini-3-flash-preview
      max_attempts: 5
      base_delay_s: 1.0

    session:
      tick_interval_s: 3.0
      sweep_interval_s: 180.0
      audit_source: live
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from agrolink._catalog import FALLBACK_LOCATION
from agrolink.client.errors import ConfigurationError
from agrolink.client.retry import RetryPolicy
from agrolink.client.transport import DEFAULT_BASE_URL
from agrolink.models import GeoPosition

__all__ = ["AgrolinkConfig", "ClientSettings", "SessionSettings", "load_yaml_config"]

logger = logging.getLogger("agrolink.config")

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


class ClientSettings(BaseModel):
    """Remote-call client settings.

    Attributes:
        api_key: Explicit key; when unset :meth:`resolve_api_key` reads the
            ``GEMINI_API_KEY`` or ``API_KEY`` environment variable.
        base_url: REST API root.
        flash_model: Model for image analysis and log assessment.
        pro_model: Model for reports and climate outlooks.
        timeout_s: Per-request timeout.
        max_attempts / base_delay_s / max_jitter_s: Retry policy.
    """

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    flash_model: str = "gemini-3-flash-preview"
    pro_model: str = "gemini-3-pro-preview"
    timeout_s: float = Field(default=60.0, gt=0)
    max_attempts: int = Field(default=5, ge=1)
    base_delay_s: float = Field(default=1.0, ge=0)
    max_jitter_s: float = Field(default=0.5, ge=0)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay_s=self.base_delay_s,
            max_jitter_s=self.max_jitter_s,
        )

    def resolve_api_key(self) -> str:
        if self.api_key:
            return self.api_key
        for var in API_KEY_ENV_VARS:
            value = os.environ.get(var)
            if value:
                return value
        raise ConfigurationError(
            f"No API key configured. Set client.api_key or one of: {', '.join(API_KEY_ENV_VARS)}"
        )


class SessionSettings(BaseModel):
    tick_interval_s: float = Field(default=3.0, gt=0)
    sweep_interval_s: float = Field(default=180.0, gt=0)
    sweep_enabled: bool = True
    audit_source: Literal["live", "archive", "nodes"] = "live"
    fallback_location: GeoPosition = FALLBACK_LOCATION
    battery_threshold: int = Field(default=25, ge=0, le=100)


class AgrolinkConfig(BaseModel):
    """Parsed representation of the full YAML configuration."""

    client: ClientSettings = Field(default_factory=ClientSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    log_level: str = "INFO"


def load_yaml_config(path: str | Path) -> AgrolinkConfig:
    """Load and validate a YAML configuration file.

    Raises:
        FileNotFoundError: if *path* does not exist.
        ConfigurationError: if the file is not a mapping or fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r") as fh:
        raw: Any = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config root must be a mapping, got {type(raw).__name__}")

    try:
        config = AgrolinkConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config {path}: {exc}") from exc

    logger.info(
        "Loaded config: tick=%.1fs, sweep=%.1fs (%s), retries=%d",
        config.session.tick_interval_s,
        config.session.sweep_interval_s,
        "on" if config.session.sweep_enabled else "off",
        config.client.max_attempts,
    )
    return config
