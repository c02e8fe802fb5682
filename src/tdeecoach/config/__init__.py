"""Configuration for tdeecoach."""

from tdeecoach.config.settings import (
    AdherenceConfig,
    DefaultsConfig,
    EstimatorConfig,
    Settings,
    default_config_path,
    get_settings,
    reload_settings,
)

__all__ = [
    "AdherenceConfig",
    "DefaultsConfig",
    "EstimatorConfig",
    "Settings",
    "default_config_path",
    "get_settings",
    "reload_settings",
]
