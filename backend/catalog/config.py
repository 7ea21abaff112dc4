"""Configuration loader for the catalog aggregation service."""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from backend.catalog.errors import ConfigError

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

UPSTREAM_BASE_URL_ENV = "CATALOG_UPSTREAM_BASE_URL"
MAX_CONCURRENT_SHARDS_ENV = "CATALOG_MAX_CONCURRENT_SHARDS"


class _FrozenModel(BaseModel):
    """Base model enforcing immutability for config sections."""

    model_config = ConfigDict(frozen=True)


class PipelineConfig(_FrozenModel):
    """Pipeline-level configuration."""

    version: str = Field(..., min_length=1)


class NormalizationConfig(_FrozenModel):
    """Record normalization settings."""

    unknown_placeholders: List[str] = Field(default_factory=lambda: ["unknown"])

    @field_validator("unknown_placeholders")
    @classmethod
    def _normalize_placeholders(cls, values: List[str]) -> List[str]:
        normalized: List[str] = []
        for value in values:
            cleaned = value.strip().casefold()
            if cleaned and cleaned not in normalized:
                normalized.append(cleaned)
        return normalized

    def is_placeholder(self, name: str) -> bool:
        """Return whether the decoded name is an ``unknown`` sentinel."""

        return name.strip().casefold() in self.unknown_placeholders


class UpstreamConfig(_FrozenModel):
    """Settings for the business listing data source."""

    base_url: str = Field(..., min_length=1)
    timeout_seconds: float = Field(..., gt=0)
    max_concurrent_shards: int = Field(5, ge=1)
    search_timeout_seconds: float = Field(..., gt=0)
    max_retries: int = Field(0, ge=0)
    backoff_initial_seconds: float = Field(0.5, gt=0)
    backoff_max_seconds: float = Field(4.0, gt=0)
    retry_statuses: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_backoff(self) -> "UpstreamConfig":
        if self.backoff_initial_seconds > self.backoff_max_seconds:
            msg = "upstream.backoff_initial_seconds cannot exceed upstream.backoff_max_seconds"
            raise ValueError(msg)
        return self


class APIConfig(_FrozenModel):
    """HTTP surface settings."""

    allowed_origins: List[str] = Field(default_factory=list)


class AppConfig(_FrozenModel):
    """Top-level application configuration composed from config.yaml."""

    pipeline: PipelineConfig
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    upstream: UpstreamConfig
    api: APIConfig = Field(default_factory=APIConfig)

    @staticmethod
    def default_path() -> Path:
        """Return the default location of the configuration file.

        Returns:
            Path: Absolute path to config.yaml at the repository root.
        """
        return REPO_ROOT / "config.yaml"


def _determine_env_file_path() -> Optional[Path]:
    """Return the path to the environment file if one should be loaded."""

    override = os.getenv("CATALOG_ENV_FILE")
    if override:
        candidate = Path(override).expanduser()
        if candidate.exists():
            return candidate
        LOGGER.warning("Configured environment file override does not exist: %s", candidate)
        return None
    if DEFAULT_ENV_FILE.exists():
        return DEFAULT_ENV_FILE
    return None


def _load_env_file(path: Path) -> None:
    """Populate ``os.environ`` with values read from a ``.env`` file.

    Variables already set in the process environment take precedence.
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.lower().startswith("export "):
                    line = line[7:].lstrip()
                if "=" not in line:
                    continue
                key, raw_value = line.split("=", 1)
                key = key.strip()
                if not key or os.environ.get(key, "").strip():
                    continue
                value = raw_value.strip()
                if len(value) >= 2 and value[0] in {'"', "'"} and value[-1] == value[0]:
                    value = value[1:-1]
                os.environ[key] = value
    except OSError:
        LOGGER.warning("Unable to read environment file at %s", path)


def _apply_environment_overrides(raw_content: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment-based overrides into the raw configuration mapping.

    Args:
        raw_content: Parsed YAML configuration prior to Pydantic validation.

    Returns:
        Dict[str, Any]: Configuration mapping with environment overrides applied.
    """

    env_file_path = _determine_env_file_path()
    if env_file_path is not None:
        _load_env_file(env_file_path)

    upstream_section = raw_content.setdefault("upstream", {})
    base_url = os.getenv(UPSTREAM_BASE_URL_ENV, "").strip()
    if base_url:
        upstream_section["base_url"] = base_url
        LOGGER.info("Upstream base URL overridden from environment")
    max_shards = os.getenv(MAX_CONCURRENT_SHARDS_ENV, "").strip()
    if max_shards:
        try:
            upstream_section["max_concurrent_shards"] = int(max_shards)
        except ValueError as exc:
            raise ConfigError(f"{MAX_CONCURRENT_SHARDS_ENV} must be an integer") from exc
    return raw_content


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read YAML content from disk.

    Args:
        path: Location of the YAML file.

    Returns:
        Dict[str, Any]: Parsed YAML content.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        LOGGER.error("Configuration file missing at %s", path)
        raise ConfigError("Configuration file not found") from exc
    except yaml.YAMLError as exc:
        LOGGER.error("Invalid YAML syntax in %s", path)
        raise ConfigError("Invalid YAML syntax") from exc
    if not isinstance(data, dict):
        LOGGER.error("Configuration root must be a mapping: %s", path)
        raise ConfigError("Configuration root must be a mapping")
    return data


@lru_cache(maxsize=1)
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from YAML.

    Args:
        path: Optional override path to the YAML file.

    Returns:
        AppConfig: Parsed configuration object.

    Raises:
        ConfigError: If the configuration cannot be loaded or validated.
    """
    config_path = path or AppConfig.default_path()
    raw_content = _read_yaml(config_path)
    raw_content = _apply_environment_overrides(raw_content)
    try:
        return AppConfig(**raw_content)
    except ValidationError as exc:
        LOGGER.error("Invalid configuration values: %s", exc)
        raise ConfigError("Configuration validation failed") from exc


__all__ = [
    "APIConfig",
    "AppConfig",
    "ConfigError",
    "NormalizationConfig",
    "PipelineConfig",
    "UpstreamConfig",
    "load_config",
]
