"""Configuration and logging helpers."""

from .config import ConfigError, ConfigManager, NetworkSettings, PlannerSettings
from .logging import setup_logging

__all__ = ["ConfigError", "ConfigManager", "NetworkSettings", "PlannerSettings", "setup_logging"]
