"""Configuration management for focusboard."""

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .utils.validation import validate_duration_boundaries

logger = logging.getLogger(__name__)

TRUE_STRINGS = {"true", "yes", "on", "1"}
FALSE_STRINGS = {"false", "no", "off", "0"}


def _as_bool(value: Any) -> bool:
    """Read a boolean setting; strings such as "false" are parsed, not truth-tested."""
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise ValueError(f"Expected a boolean, got '{value}'")
    return bool(value)


@dataclass
class StreakSettings:
    """Rules for what counts as a streak day."""
    minimum_focus_time: int = 25  # minutes required for a streak day
    grace_period_days: int = 1  # missed days tolerated before the streak breaks
    streak_recovery_enabled: bool = True

    @property
    def grace_enabled(self) -> bool:
        return self.streak_recovery_enabled and self.grace_period_days > 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StreakSettings":
        data = data or {}
        return cls(
            minimum_focus_time=int(data.get("minimum_focus_time", 25)),
            grace_period_days=int(data.get("grace_period_days", 1)),
            streak_recovery_enabled=_as_bool(data.get("streak_recovery_enabled", True)),
        )


@dataclass
class AnalyticsSettings:
    """Tunable constants for the pattern analyzers and reporters."""
    heatmap_quality_weight: float = 0.7
    heatmap_volume_weight: float = 0.3
    quality_confidence_samples: int = 5
    duration_bucket_boundaries: List[int] = field(default_factory=lambda: [0, 15, 30, 45, 60, 90])
    suggestion_count: int = 2
    default_session_minutes: int = 25
    deep_work_minutes: int = 45
    trend_dead_band: float = 5.0  # percent
    max_range_days: int = 365
    goal_streak_lookback_weeks: int = 12

    def __post_init__(self):
        self.duration_bucket_boundaries = validate_duration_boundaries(self.duration_bucket_boundaries)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AnalyticsSettings":
        defaults = cls()
        data = data or {}
        return cls(
            heatmap_quality_weight=float(data.get("heatmap_quality_weight", defaults.heatmap_quality_weight)),
            heatmap_volume_weight=float(data.get("heatmap_volume_weight", defaults.heatmap_volume_weight)),
            quality_confidence_samples=int(data.get("quality_confidence_samples", defaults.quality_confidence_samples)),
            duration_bucket_boundaries=[int(b) for b in data.get("duration_bucket_boundaries",
                                                                 defaults.duration_bucket_boundaries)],
            suggestion_count=int(data.get("suggestion_count", defaults.suggestion_count)),
            default_session_minutes=int(data.get("default_session_minutes", defaults.default_session_minutes)),
            deep_work_minutes=int(data.get("deep_work_minutes", defaults.deep_work_minutes)),
            trend_dead_band=float(data.get("trend_dead_band", defaults.trend_dead_band)),
            max_range_days=int(data.get("max_range_days", defaults.max_range_days)),
            goal_streak_lookback_weeks=int(data.get("goal_streak_lookback_weeks",
                                                    defaults.goal_streak_lookback_weeks)),
        )


@dataclass
class ConfigModel:
    """Global configuration model for focusboard."""

    # File paths
    data_dir: str = "~/.focusboard"
    database_file: str = "focusboard.db"

    # Display preferences
    default_range_days: int = 7
    table_style: str = "simple"  # tabulate format for analytics tables
    no_color: bool = False

    streak: StreakSettings = field(default_factory=StreakSettings)
    analytics: AnalyticsSettings = field(default_factory=AnalyticsSettings)

    def __post_init__(self):
        """Post-initialization setup."""
        self.data_dir = os.path.expanduser(self.data_dir)
        self.no_color = _as_bool(self.no_color)
        if isinstance(self.streak, dict):
            self.streak = StreakSettings.from_dict(self.streak)
        if isinstance(self.analytics, dict):
            self.analytics = AnalyticsSettings.from_dict(self.analytics)

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {
            "data_dir": self.data_dir,
            "database_file": self.database_file,
            "default_range_days": self.default_range_days,
            "table_style": self.table_style,
            "no_color": self.no_color,
            "streak": asdict(self.streak),
            "analytics": asdict(self.analytics),
        }
        return yaml.dump(data, default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML."""
        data = yaml.safe_load(yaml_str) or {}
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def get_database_path(self) -> Path:
        """Get the SQLite database path, creating the data directory."""
        Path(self.data_dir).mkdir(parents=True, exist_ok=True)
        return Path(self.data_dir) / self.database_file

    def get_config_path(self) -> Path:
        """Get the config file path."""
        return Path(self.data_dir) / "config.yaml"


class Config:
    """Configuration manager for focusboard."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file or fall back to defaults."""
        if cls._instance is not None and config_path is None:
            return cls._instance

        config = ConfigModel()

        if config_path is None:
            config_path = config.get_config_path()

        if config_path.exists():
            try:
                with open(config_path, 'r') as f:
                    config = ConfigModel.from_yaml(f.read())
                logger.debug(f"Loaded configuration from {config_path}")
            except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}. Using defaults.")
                config = ConfigModel()
        else:
            logger.debug(f"No configuration at {config_path}, using defaults")

        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            f.write(config.to_yaml())
        logger.info(f"Configuration saved to {config_path}")

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    Config.save(config, config_path)
