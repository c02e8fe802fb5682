"""Application settings and configuration management."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from tdeecoach.errors import InvalidInputError


def _default_config_dir() -> Path:
    """Return the default configuration directory."""
    return Path.home() / ".tdeecoach"


def default_config_path() -> Path:
    """Return the default config.yaml path."""
    return _default_config_dir() / "config.yaml"


@dataclass
class EstimatorConfig:
    """TDEE estimator configuration."""

    smoothing_method: str = "ewma"  # "ewma" or "kalman"
    smoothing_alpha: float = 0.1
    tdee_smoothing: float = 0.3
    max_relative_change: float = 0.2
    min_tdee: float = 1200.0
    max_tdee: float = 5000.0
    quality_window_days: int = 30
    recency_half_life_days: float = 30.0


@dataclass
class AdherenceConfig:
    """Tolerance bands for adherence scoring (fraction of target)."""

    calories_tolerance: float = 0.05
    protein_tolerance: float = 0.10
    carbs_tolerance: float = 0.15
    fat_tolerance: float = 0.15


@dataclass
class DefaultsConfig:
    """Default values for various operations."""

    output_format: str = "table"  # "table" or "json"
    chunk_size: int = 50


@dataclass
class Settings:
    """Main application settings."""

    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    adherence: AdherenceConfig = field(default_factory=AdherenceConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from YAML file or return defaults.

        Args:
            config_path: Path to config.yaml. If None, uses ~/.tdeecoach/config.yaml

        Returns:
            Settings instance

        Raises:
            InvalidInputError: Malformed YAML or a value of the wrong type
        """
        if config_path is None:
            config_path = default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise InvalidInputError(f"Invalid config file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise InvalidInputError(f"Config file {config_path} must contain a mapping")

        settings = cls()
        try:
            # Parse estimator config
            if "estimator" in data:
                est_data = data["estimator"] or {}
                est = settings.estimator
                if "smoothing_method" in est_data:
                    est.smoothing_method = str(est_data["smoothing_method"]).lower()
                if "smoothing_alpha" in est_data:
                    est.smoothing_alpha = float(est_data["smoothing_alpha"])
                if "tdee_smoothing" in est_data:
                    est.tdee_smoothing = float(est_data["tdee_smoothing"])
                if "max_relative_change" in est_data:
                    est.max_relative_change = float(est_data["max_relative_change"])
                if "min_tdee" in est_data:
                    est.min_tdee = float(est_data["min_tdee"])
                if "max_tdee" in est_data:
                    est.max_tdee = float(est_data["max_tdee"])
                if "quality_window_days" in est_data:
                    est.quality_window_days = int(est_data["quality_window_days"])
                if "recency_half_life_days" in est_data:
                    est.recency_half_life_days = float(est_data["recency_half_life_days"])

            # Parse adherence tolerances
            if "adherence" in data:
                adh_data = data["adherence"] or {}
                for name in ("calories", "protein", "carbs", "fat"):
                    key = f"{name}_tolerance"
                    if key in adh_data:
                        setattr(settings.adherence, key, float(adh_data[key]))

            # Parse defaults
            if "defaults" in data:
                def_data = data["defaults"] or {}
                if "output_format" in def_data:
                    settings.defaults.output_format = def_data["output_format"]
                if "chunk_size" in def_data:
                    settings.defaults.chunk_size = int(def_data["chunk_size"])
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Invalid value in {config_path}: {e}") from e

        return settings

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save current settings to YAML file.

        Args:
            config_path: Path to save config.yaml. If None, uses ~/.tdeecoach/config.yaml
        """
        if config_path is None:
            config_path = default_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> dict:
        """Convert to the nested dictionary written by ``save``."""
        return {
            "estimator": {
                "smoothing_method": self.estimator.smoothing_method,
                "smoothing_alpha": self.estimator.smoothing_alpha,
                "tdee_smoothing": self.estimator.tdee_smoothing,
                "max_relative_change": self.estimator.max_relative_change,
                "min_tdee": self.estimator.min_tdee,
                "max_tdee": self.estimator.max_tdee,
                "quality_window_days": self.estimator.quality_window_days,
                "recency_half_life_days": self.estimator.recency_half_life_days,
            },
            "adherence": {
                "calories_tolerance": self.adherence.calories_tolerance,
                "protein_tolerance": self.adherence.protein_tolerance,
                "carbs_tolerance": self.adherence.carbs_tolerance,
                "fat_tolerance": self.adherence.fat_tolerance,
            },
            "defaults": {
                "output_format": self.defaults.output_format,
                "chunk_size": self.defaults.chunk_size,
            },
        }


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading from disk if needed."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    """Force reload settings from disk."""
    global _settings
    _settings = Settings.load(config_path)
    return _settings
