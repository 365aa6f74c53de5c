"""
Configuration management for the planner and the temporal network
"""

import copy
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..temporal.units import LODLevel, TimeUnit

if TYPE_CHECKING:
    from ..htn.planner import PlannerConfig
    from ..temporal.stn import SimpleTemporalNetwork

logger = logging.getLogger(__name__)


DEFAULT_CONFIG = {
    "planner": {
        "max_steps": 10000,
        "time_budget_ms": 60000,
        "max_depth": 64,
        "max_backtracks": 1000,
        "max_replans": 3,
        "include_trace": True,
        "verify_goals": True,
        "execute": False,
    },
    "stn": {
        "time_unit": "second",
        "lod_level": "medium",
        "parallel": False,
        "workers": 4,
    },
    "logging": {
        "level": "INFO",
    },
}


class ConfigError(Exception):
    """Raised for unreadable or invalid configuration."""


class PlannerSettings(BaseModel):
    """Validated ``planner`` section."""

    max_steps: int = Field(default=10000, ge=1)
    time_budget_ms: int = Field(default=60000, ge=1)
    max_depth: int = Field(default=64, ge=1)
    max_backtracks: int = Field(default=1000, ge=0)
    max_replans: int = Field(default=3, ge=0)
    include_trace: bool = True
    verify_goals: bool = True
    execute: bool = False


class NetworkSettings(BaseModel):
    """Validated ``stn`` section."""

    time_unit: TimeUnit = TimeUnit.SECOND
    lod_level: LODLevel = LODLevel.MEDIUM
    parallel: bool = False
    workers: int = Field(default=4, ge=1, description="Threads for the row-parallel closure")


class ConfigManager:
    """Manages configuration for planning runs"""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to YAML config file, if None uses defaults
        """
        self.config = copy.deepcopy(DEFAULT_CONFIG)

        if config_path and config_path.exists():
            self.load_config(config_path)
        elif config_path:
            logger.warning(f"Config file not found: {config_path}, using defaults")

    def load_config(self, config_path: Path) -> None:
        """Load configuration from YAML file, merged over the defaults."""
        try:
            with open(config_path, 'r') as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}") from e

        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")

        self.config = self._merge_configs(DEFAULT_CONFIG, file_config)
        logger.info(f"Loaded configuration from {config_path}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key_path: Dot-separated path like 'planner.max_steps'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key_path: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path like 'stn.lod_level'
            value: Value to set
        """
        keys = key_path.split('.')
        config = self.config

        for key in keys[:-1]:
            if key not in config:
                config[key] = {}
            config = config[key]

        config[keys[-1]] = value

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries."""
        result = copy.deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def save_config(self, config_path: Path) -> None:
        """Save current configuration to YAML file."""
        try:
            with open(config_path, 'w') as f:
                yaml.dump(self.config, f, default_flow_style=False, indent=2)
        except OSError as e:
            raise ConfigError(f"Failed to save config to {config_path}: {e}") from e
        logger.info(f"Saved configuration to {config_path}")

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self.config)

    # =========================================================================
    # Typed views
    # =========================================================================

    def planner_settings(self) -> PlannerSettings:
        return self._validate(PlannerSettings, "planner")

    def network_settings(self) -> NetworkSettings:
        return self._validate(NetworkSettings, "stn")

    def _validate(self, model: type, section: str) -> Any:
        try:
            return model.model_validate(self.config.get(section) or {})
        except ValidationError as e:
            raise ConfigError(f"Invalid '{section}' configuration: {e}") from e

    def network(self) -> "SimpleTemporalNetwork":
        """Empty network built from the ``stn`` section."""
        from ..temporal.stn import SimpleTemporalNetwork

        settings = self.network_settings()
        return SimpleTemporalNetwork.new(
            settings.time_unit,
            settings.lod_level,
            parallel=settings.parallel,
            workers=settings.workers,
        )

    def planner_config(self, network: Optional["SimpleTemporalNetwork"] = None) -> "PlannerConfig":
        """PlannerConfig from the ``planner`` and ``stn`` sections."""
        from ..htn.budgets import PlannerBudgets
        from ..htn.planner import PlannerConfig

        settings = self.planner_settings()
        return PlannerConfig(
            budgets=PlannerBudgets(
                max_steps=settings.max_steps,
                time_budget_ms=settings.time_budget_ms,
                max_depth=settings.max_depth,
                max_backtracks=settings.max_backtracks,
                max_replans=settings.max_replans,
            ),
            include_trace=settings.include_trace,
            verify_goals=settings.verify_goals,
            execute=settings.execute,
            network=network if network is not None else self.network(),
        )
