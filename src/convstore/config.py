"""Conversation storage configuration management.

Loads configuration from .env files and YAML config files, merges them,
and provides validated settings via pydantic models.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class CacheConfig(BaseModel):
    """Bounds for the session-scoped in-memory tiers."""

    message_max_entries: int = 100
    vector_max_entries: int = 1000

    @field_validator("message_max_entries", "vector_max_entries")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Ensure cache bounds are positive."""
        if v <= 0:
            raise ValueError("cache bounds must be positive")
        return v


class EmbeddingConfig(BaseModel):
    """Configuration for the embedding provider (Ollama)."""

    enabled: bool = True
    host: str = "http://localhost:11434"
    model: str = "nomic-embed-text"
    timeout: float = 30.0

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Ensure timeout is positive."""
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("host")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize host so paths can be appended."""
        return v.rstrip("/")


class ConvStoreConfig(BaseSettings):
    """
    Main storage configuration.

    Loads from:
    1. .env file (via pydantic-settings)
    2. YAML config files (via load() classmethod)
    3. Environment variables with CONVSTORE_ prefix

    Values passed to the constructor (including those read from YAML by
    load()) take precedence over environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONVSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    data_dir: str = "~/.convstore"
    log_level: str = "INFO"

    cache: CacheConfig = Field(default_factory=CacheConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log_level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def expand_data_dir(self) -> "ConvStoreConfig":
        """Expand user home directory in data_dir."""
        self.data_dir = str(Path(self.data_dir).expanduser())
        return self

    @property
    def session_dir(self) -> Path:
        """Directory holding one sub-directory per session."""
        return Path(self.data_dir) / "session"

    @classmethod
    def load(cls, yaml_path: Path | str | None = None) -> "ConvStoreConfig":
        """
        Load configuration from YAML and environment.

        Args:
            yaml_path: Path to YAML config file. If None, searches default locations.

        Returns:
            Validated ConvStoreConfig instance.
        """
        yaml_file = cls._find_yaml_config(yaml_path)

        yaml_data: dict[str, Any] = {}
        if yaml_file and yaml_file.exists():
            yaml_data = cls._load_yaml_file(yaml_file)
            logger.debug(f"Loaded config from {yaml_file}")

        # The YAML may wrap everything in a top-level 'convstore' section
        if "convstore" in yaml_data:
            merged_data = dict(yaml_data["convstore"] or {})
            merged_data.update({k: v for k, v in yaml_data.items() if k != "convstore"})
            yaml_data = merged_data

        return cls(**cls._known_fields(yaml_data))

    @classmethod
    def _find_yaml_config(cls, yaml_path: Path | str | None) -> Path | None:
        """Find the YAML config file to load."""
        if yaml_path:
            return Path(yaml_path)

        default_locations = [
            Path("config/convstore.yaml"),
            Path("config/convstore.yml"),
            Path.home() / ".convstore" / "config.yaml",
        ]

        for location in default_locations:
            if location.exists():
                return location

        return None

    @classmethod
    def _load_yaml_file(cls, path: Path) -> dict[str, Any]:
        """Load YAML file and return parsed data."""
        try:
            with path.open("r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse YAML file {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring YAML file {path}: top level is not a mapping")
            return {}
        return data

    @classmethod
    def _known_fields(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Drop YAML keys that are not configuration fields."""
        known = set(cls.model_fields)
        unknown = sorted(k for k in data if k not in known)
        if unknown:
            logger.debug(f"Ignoring unknown config keys: {unknown}")
        return {k: v for k, v in data.items() if k in known}

    def get_log_config(self) -> dict[str, Any]:
        """Get logging configuration dict for use with logging.config."""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": self.log_level,
                    "formatter": "standard",
                },
            },
            "root": {
                "level": self.log_level,
                "handlers": ["console"],
            },
        }

    def configure_logging(self) -> None:
        """Apply get_log_config() to the logging system."""
        logging.config.dictConfig(self.get_log_config())
