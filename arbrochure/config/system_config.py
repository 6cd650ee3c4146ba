"""
system_config.py - System configuration

Collects every tunable of the AR tracking pipeline in one YAML-backed
structure.

Version: 1.0
Author: AR Brochure Team
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field, fields, asdict
from typing import Dict, Any, Optional
import logging

from ..tracking.pose_stabilizer import PartialConfig, StabilityMode

logger = logging.getLogger(__name__)


@dataclass
class StabilizerSettings:
    """Stabilizer settings (None = take the mode preset)"""
    stability_mode: str = "stable"  # "responsive", "stable", "ultra-stable"
    smoothing_factor: Optional[float] = None
    jitter_threshold: Optional[float] = None
    adaptive_smoothing: bool = True

    def to_partial(self) -> PartialConfig:
        return PartialConfig(
            stability_mode=self.stability_mode,
            smoothing_factor=self.smoothing_factor,
            jitter_threshold=self.jitter_threshold,
            adaptive_smoothing=self.adaptive_smoothing
        )


@dataclass
class TrackingSettings:
    """Tracking session settings"""
    fps: float = 30.0
    metrics_interval: int = 30  # tracked frames between stability_metrics events
    history_size: int = 10


@dataclass
class OutputConfig:
    """Output settings"""
    save_results: bool = True
    output_dir: str = "output"
    output_format: str = "csv"  # "csv" or "json"

    # logging
    log_level: str = "INFO"
    log_to_file: bool = False


def _section(cls, d: Optional[Dict[str, Any]], name: str):
    """Build one section dataclass, rejecting unknown keys"""
    d = d or {}
    if not isinstance(d, dict):
        raise ValueError(f"config section '{name}' must be a mapping, got {type(d).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = set(d) - known
    if unknown:
        raise ValueError(f"unknown keys in config section '{name}': {sorted(unknown)}")
    return cls(**d)


@dataclass
class SystemConfig:
    """Complete system configuration"""
    stabilizer: StabilizerSettings = field(default_factory=StabilizerSettings)
    tracking: TrackingSettings = field(default_factory=TrackingSettings)
    output: OutputConfig = field(default_factory=OutputConfig)

    def validate(self):
        """Range checks; raises ValueError naming the offending key"""
        StabilityMode.parse(self.stabilizer.stability_mode)

        factor = self.stabilizer.smoothing_factor
        if factor is not None and not (0.0 <= factor <= 1.0):
            raise ValueError(f"stabilizer.smoothing_factor must be in [0,1], got {factor}")
        threshold = self.stabilizer.jitter_threshold
        if threshold is not None and threshold < 0.0:
            raise ValueError(f"stabilizer.jitter_threshold must be >= 0, got {threshold}")

        if self.tracking.fps <= 0.0:
            raise ValueError(f"tracking.fps must be > 0, got {self.tracking.fps}")
        if self.tracking.metrics_interval < 1:
            raise ValueError(
                f"tracking.metrics_interval must be >= 1, got {self.tracking.metrics_interval}"
            )
        if self.tracking.history_size < 3:
            raise ValueError(
                f"tracking.history_size must be >= 3, got {self.tracking.history_size}"
            )

        if self.output.output_format not in {"csv", "json"}:
            raise ValueError(
                f"output.output_format must be csv|json, got {self.output.output_format}"
            )
        if self.output.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"output.log_level is invalid: {self.output.log_level}")

    def save(self, filepath: str):
        """Write the config as YAML"""
        with open(filepath, 'w') as f:
            yaml.dump(asdict(self), f, default_flow_style=False, sort_keys=False)

        logger.info(f"Config saved to {filepath}")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'SystemConfig':
        unknown = set(d) - {'stabilizer', 'tracking', 'output'}
        if unknown:
            raise ValueError(f"unknown config sections: {sorted(unknown)}")

        config = cls(
            stabilizer=_section(StabilizerSettings, d.get('stabilizer'), 'stabilizer'),
            tracking=_section(TrackingSettings, d.get('tracking'), 'tracking'),
            output=_section(OutputConfig, d.get('output'), 'output')
        )
        config.validate()
        return config


def load_config(filepath: str) -> SystemConfig:
    """
    Load configuration from a YAML file

    A missing file falls back to defaults with a warning.

    Args:
        filepath: path to the YAML file

    Returns:
        SystemConfig
    """
    path = Path(filepath)

    if not path.exists():
        logger.warning(f"Config file not found: {filepath}, using defaults")
        return SystemConfig()

    with open(path, 'r') as f:
        config_dict = yaml.safe_load(f)

    if config_dict is None:
        return SystemConfig()
    if not isinstance(config_dict, dict):
        raise ValueError(f"config root must be a mapping, got {type(config_dict).__name__}")

    return SystemConfig.from_dict(config_dict)


def create_default_config(save_path: Optional[str] = None) -> SystemConfig:
    """
    Default configuration, optionally written to save_path
    """
    config = SystemConfig()

    if save_path:
        config.save(save_path)

    return config
