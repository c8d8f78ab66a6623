"""
Configuration management for game analysis.

This module provides the AnalysisConfig dataclass and utilities for loading
it from YAML files, dictionaries, or programmatically with overrides.
"""

from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from loguru import logger


@dataclass
class AnalysisConfig:
    """
    Complete configuration for an analysis run.

    Attributes:
        engine_path: Path to a UCI engine binary (None = auto-detect Stockfish)
        threads: Engine "Threads" option
        hash_mb: Engine "Hash" option in MB
        init_timeout: Seconds to wait for the engine to answer uci/isready
        shallow_depth: Search depth for normal analysis
        shallow_timeout: Per-position time budget (seconds) for normal analysis
        deep_depth: Search depth for deep analysis
        deep_timeout: Per-position time budget (seconds) for deep analysis
        multipv: Number of candidate continuations to request
        catalog_path: YAML reference catalog (None = bundled catalog)
        avoid_profile_id: Catalog id skipped on ties when alternatives exist
        logging: Logging configuration (level, file)
    """
    engine_path: Optional[str] = None
    threads: int = 1
    hash_mb: int = 16
    init_timeout: float = 5.0
    shallow_depth: int = 12
    shallow_timeout: float = 3.0
    deep_depth: int = 20
    deep_timeout: float = 10.0
    multipv: int = 3
    catalog_path: Optional[str] = None
    avoid_profile_id: Optional[str] = "anand"
    logging: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.shallow_depth <= 0 or self.deep_depth <= 0:
            raise ValueError("Search depths must be positive")
        if self.shallow_timeout <= 0 or self.deep_timeout <= 0:
            raise ValueError("Search timeouts must be positive")
        if self.init_timeout <= 0:
            raise ValueError(f"Invalid init_timeout: {self.init_timeout}")
        if not 1 <= self.multipv <= 3:
            raise ValueError(f"multipv must be between 1 and 3, got {self.multipv}")
        if self.threads <= 0:
            raise ValueError(f"Invalid thread count: {self.threads}")

        if not self.logging:
            self.logging = {
                "level": "INFO",
                "file": None,
            }

    def depth_and_timeout(self, deep: bool = False) -> Tuple[int, float]:
        """
        Select the search budget for the requested analysis mode.

        Args:
            deep: True for deep analysis, False for the normal (shallow) mode

        Returns:
            Tuple of (depth, timeout in seconds)
        """
        if deep:
            return self.deep_depth, self.deep_timeout
        return self.shallow_depth, self.shallow_timeout

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "AnalysisConfig":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            AnalysisConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If config file is malformed
            ValueError: If the file contains unknown keys or invalid values
        """
        log = logger.bind(context="AnalysisConfig.from_yaml")
        log.info(f"Loading analysis configuration from {yaml_path}")

        config_file = Path(yaml_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(config_file, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration root must be a mapping: {yaml_path}")

        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "AnalysisConfig":
        """
        Create configuration from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            AnalysisConfig instance
        """
        known_fields = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known_fields
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**config_dict)

    def to_yaml(self, yaml_path: str):
        """
        Save configuration to YAML file.

        Args:
            yaml_path: Path to save YAML file
        """
        log = logger.bind(context="AnalysisConfig.to_yaml")
        log.info(f"Saving configuration to {yaml_path}")

        config_file = Path(yaml_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w') as f:
            yaml.safe_dump(asdict(self), f, default_flow_style=False)

        log.debug(f"Configuration saved to {yaml_path}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def update(self, **kwargs):
        """
        Update configuration parameters.

        Args:
            **kwargs: Parameters to update
        """
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                logger.warning(f"Unknown configuration parameter: {key}")


def load_config_with_overrides(yaml_path: Optional[str] = None, **overrides) -> AnalysisConfig:
    """
    Load configuration from YAML (or defaults) and apply overrides.

    Overrides whose value is None are ignored so command-line flags that were
    not given leave the file's values alone.

    Args:
        yaml_path: Path to base YAML configuration (None = defaults)
        **overrides: Parameters to override

    Returns:
        AnalysisConfig with overrides applied
    """
    config = AnalysisConfig.from_yaml(yaml_path) if yaml_path else AnalysisConfig()
    config.update(**{k: v for k, v in overrides.items() if v is not None})
    config.__post_init__()
    return config
