"""Runtime configuration for installation planning.

Precedence, lowest to highest: ``Constants`` defaults, a YAML config file,
environment variables, explicit keyword overrides.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

import yaml

from constants import Constants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannerConfig:
    """Configuration for the planner, its metadata cache and registry client."""

    registry_url: str = Constants.REGISTRY_URL_NPM
    timeout: float = Constants.REQUEST_TIMEOUT
    request_delay: float = Constants.REQUEST_DELAY_SEC
    cache_file: Optional[str] = None
    max_concurrency: int = Constants.MAX_CONCURRENCY
    plan_timeout: Optional[float] = None
    log_level: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.registry_url:
            raise ValueError("registry_url must not be empty")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.request_delay < 0:
            raise ValueError("request_delay must not be negative")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.plan_timeout is not None and self.plan_timeout <= 0:
            raise ValueError("plan_timeout must be positive")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PlannerConfig":
        """Create config from a mapping, ignoring unknown keys.

        Accepts either the bare keys or a ``planner:`` section.
        """
        section = data.get("planner", data) if isinstance(data, Mapping) else {}
        if not isinstance(section, Mapping):
            raise ValueError("'planner' section must be a mapping")
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in section.items():
            norm = str(key).replace("-", "_")
            if norm not in known:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            values[norm] = value
        return cls(**values)

    @classmethod
    def load(cls, path: Optional[str] = None, **overrides: Any) -> "PlannerConfig":
        """Build config from defaults, file, environment and ``overrides``."""
        config_path = path or os.environ.get(Constants.CONFIG_ENV) or _find_default_config()
        config = cls.from_mapping(_load_yaml_config(config_path)) if config_path else cls()

        env_overrides: Dict[str, Any] = {}
        if os.environ.get(Constants.REGISTRY_URL_ENV):
            env_overrides["registry_url"] = os.environ[Constants.REGISTRY_URL_ENV]
        if os.environ.get(Constants.CACHE_FILE_ENV):
            env_overrides["cache_file"] = os.environ[Constants.CACHE_FILE_ENV]
        if os.environ.get(Constants.LOG_LEVEL_ENV):
            env_overrides["log_level"] = os.environ[Constants.LOG_LEVEL_ENV]
        env_overrides.update({k: v for k, v in overrides.items() if v is not None})
        return replace(config, **env_overrides) if env_overrides else config


def _find_default_config() -> Optional[str]:
    for candidate in Constants.DEFAULT_CONFIG_PATHS:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            return expanded
    return None


def _load_yaml_config(config_path: str) -> Dict[str, Any]:
    """Load a YAML (or JSON, which is valid YAML) config file.

    Raises:
        ValueError: if the file is missing, unreadable or not a mapping.
    """
    if not os.path.isfile(config_path):
        raise ValueError(f"Config file not found: {config_path}")
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as e:
        raise ValueError(f"Failed to load config {config_path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config {config_path} must contain a mapping")
    logger.debug("Loaded config from %s", config_path)
    return data
