"""
Configuration for schemaevo.

Settings are read from environment variables (prefix SCHEMAEVO_) through
pydantic-settings; CLI flags override them per invocation.

Invariants:
    - Every setting has a default that works in a plain checkout
    - get_settings() builds a fresh instance; nothing is cached process-wide

How to change safely:
    - Add new settings with defaults that keep existing invocations working
"""

from __future__ import annotations

import logging
from typing import Literal

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings

TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """schemaevo configuration loaded from environment."""

    # Inputs
    schema_path: str = Field(default="schema.yaml", description="Default schema description file")
    snapshot_dir: str = Field(
        default=".schema-snapshots", description="Directory of the file snapshot store"
    )

    # Logging
    log_level: str = Field(default="WARNING", description="Root log level")
    log_format: Literal["text", "json"] = Field(default="text", description="Log line format")

    # Planning
    minutes_per_step: int = Field(default=5, ge=0, description="Duration estimate per step")

    model_config = {"env_prefix": "SCHEMAEVO_"}


def get_settings(**overrides) -> Settings:
    """Build settings from the environment, applying explicit overrides."""
    return Settings(**overrides)


def setup_logging(settings: Settings) -> None:
    """Configure logging based on configuration.

    Args:
        settings: schemaevo settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.WARNING)

    if settings.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_LOG_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
