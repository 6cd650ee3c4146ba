"""
pose_stabilizer.py - Adaptive pose stabilization for image tracking

Raw anchor poses from a vision tracker jitter by pixel-level noise even
when the brochure is lying still, yet real camera motion has to come
through without visible lag. Each update is:

1. scored as a movement magnitude (position + rotation, pixel-like units)
2. classified as noise or intentional motion against the jitter threshold
   and an exponential average of recent movement
3. blended toward the raw pose (LERP position, SLERP rotation) with a
   smoothing factor that shrinks for larger / intentional movement

Presets (smoothing_factor / jitter_threshold):
- responsive:   0.1 / 1.0
- stable:       0.3 / 2.0
- ultra-stable: 0.6 / 4.0

Version: 1.0
Author: AR Brochure Team
"""

import math
import numpy as np
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from dataclasses import dataclass, fields
from enum import Enum
import logging

from .pose import Pose, PoseConverter
from .pose_history import PoseHistory

logger = logging.getLogger(__name__)

# Calibration constants. They set the meaning of jitter_threshold, so
# retuning them against other tracking hardware means retuning presets too.
POSITION_WEIGHT = 100.0     # metres -> pixel-like units
ROTATION_WEIGHT = 50.0      # |1 - |q0.q1|| -> pixel-like units
VELOCITY_DECAY = 0.8        # EMA: v = 0.8 * v + 0.2 * movement
ACCELERATION_RATIO = 1.2    # movement above 1.2x the recent average
ADAPTIVE_SPAN = 3.0         # adaptive reduction saturates at 3x threshold
ADAPTIVE_MAX_REDUCTION = 0.5
INTENTIONAL_REDUCTION = 0.5

DEFAULT_HISTORY_SIZE = 10
JITTER_WINDOW = 3


class StabilityMode(Enum):
    """Named operating points"""
    RESPONSIVE = "responsive"
    STABLE = "stable"
    ULTRA_STABLE = "ultra-stable"

    @classmethod
    def parse(cls, value: Union['StabilityMode', str]) -> 'StabilityMode':
        """Accept enum members, 'ultra-stable' or 'ultra_stable'"""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace('_', '-')
        for mode in cls:
            if mode.value == key:
                return mode
        raise ValueError(
            f"stability_mode must be one of "
            f"{'|'.join(m.value for m in cls)}, got {value!r}"
        )


# mode -> (smoothing_factor, jitter_threshold)
STABILITY_PRESETS: Dict[StabilityMode, Tuple[float, float]] = {
    StabilityMode.RESPONSIVE: (0.1, 1.0),
    StabilityMode.STABLE: (0.3, 2.0),
    StabilityMode.ULTRA_STABLE: (0.6, 4.0),
}


@dataclass(frozen=True)
class StabilizerConfig:
    """
    Stabilizer operating point

    Attributes:
        smoothing_factor: weight kept from the previous stable pose [0, 1]
        jitter_threshold: movement floor below which motion is presumed noise
        stability_mode: preset the values were derived from
        adaptive_smoothing: shrink smoothing in proportion to movement
    """
    smoothing_factor: float = 0.3
    jitter_threshold: float = 2.0
    stability_mode: StabilityMode = StabilityMode.STABLE
    adaptive_smoothing: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'stability_mode', StabilityMode.parse(self.stability_mode))
        object.__setattr__(self, 'smoothing_factor', float(self.smoothing_factor))
        object.__setattr__(self, 'jitter_threshold', float(self.jitter_threshold))
        object.__setattr__(self, 'adaptive_smoothing', bool(self.adaptive_smoothing))

        if not (0.0 <= self.smoothing_factor <= 1.0):
            raise ValueError(
                f"smoothing_factor must be in [0,1], got {self.smoothing_factor}"
            )
        # zero is a legal (fully responsive) threshold
        if not math.isfinite(self.jitter_threshold) or self.jitter_threshold < 0.0:
            raise ValueError(
                f"jitter_threshold must be a finite value >= 0, got {self.jitter_threshold}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'smoothing_factor': self.smoothing_factor,
            'jitter_threshold': self.jitter_threshold,
            'stability_mode': self.stability_mode.value,
            'adaptive_smoothing': self.adaptive_smoothing
        }


@dataclass(frozen=True)
class PartialConfig:
    """
    Configuration update; None means "not provided"
    """
    smoothing_factor: Optional[float] = None
    jitter_threshold: Optional[float] = None
    stability_mode: Optional[Union[StabilityMode, str]] = None
    adaptive_smoothing: Optional[bool] = None

    def __post_init__(self):
        if self.stability_mode is not None:
            object.__setattr__(self, 'stability_mode', StabilityMode.parse(self.stability_mode))

    def provided(self) -> Dict[str, Any]:
        """Fields explicitly set in this update"""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> 'PartialConfig':
        known = {f.name for f in fields(cls)}
        normalized = {}
        for raw_key, value in d.items():
            key = str(raw_key).strip().replace('-', '_')
            if key not in known:
                raise ValueError(f"unknown stabilizer config key: {raw_key!r}")
            normalized[key] = value
        return cls(**normalized)


def resolve_config(
    base: StabilizerConfig,
    partial: PartialConfig,
    apply_preset: bool = False
) -> StabilizerConfig:
    """
    Merge an update into a config

    Precedence: explicit field > mode preset > base value.
    The preset is applied when apply_preset is set (construction) or
    when the update names a stability_mode.

    Args:
        base: current configuration
        partial: fields to change
        apply_preset: force preset application for the resulting mode

    Returns:
        new StabilizerConfig
    """
    provided = partial.provided()
    mode = provided.get('stability_mode', base.stability_mode)

    merged: Dict[str, Any] = base.to_dict()
    merged['stability_mode'] = mode

    if apply_preset or 'stability_mode' in provided:
        factor, threshold = STABILITY_PRESETS[mode]
        merged['smoothing_factor'] = factor
        merged['jitter_threshold'] = threshold

    merged.update(provided)
    return StabilizerConfig(**merged)


@dataclass(frozen=True)
class StabilityMetrics:
    """
    Diagnostic snapshot

    Attributes:
        movement_velocity: EMA of per-update movement magnitude
        history_length: raw poses currently held
        is_jittering: detect_jitter() at snapshot time
        smoothing_factor: configured (not last adaptive) factor
        stability_mode: active preset name
    """
    movement_velocity: float
    history_length: int
    is_jittering: bool
    smoothing_factor: float
    stability_mode: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'movement_velocity': self.movement_velocity,
            'history_length': self.history_length,
            'is_jittering': self.is_jittering,
            'smoothing_factor': self.smoothing_factor,
            'stability_mode': self.stability_mode
        }


class PoseStabilizer:
    """
    Per-frame pose stabilization filter

    One instance per tracking session; call reset() whenever the target
    is lost so a re-acquisition never smooths across the gap.

    Example:
        >>> stabilizer = PoseStabilizer(PartialConfig(stability_mode='ultra-stable'))
        >>> stable = stabilizer.smooth_pose(raw_pose)
        >>> print(stabilizer.get_metrics().movement_velocity)
    """

    def __init__(
        self,
        config: Optional[Union[PartialConfig, StabilizerConfig, Mapping[str, Any]]] = None,
        history_size: int = DEFAULT_HISTORY_SIZE
    ):
        """
        Args:
            config: partial overrides; the mode preset fills the rest
            history_size: ring buffer capacity for jitter diagnosis
        """
        if isinstance(config, StabilizerConfig):
            self._config = config
        else:
            self._config = resolve_config(
                StabilizerConfig(),
                _as_partial(config),
                apply_preset=True
            )

        self._history = PoseHistory(capacity=history_size)
        self._last_stable_pose: Optional[Pose] = None
        self._movement_velocity = 0.0

        logger.info(
            f"PoseStabilizer initialized: mode={self._config.stability_mode.value}, "
            f"factor={self._config.smoothing_factor}, threshold={self._config.jitter_threshold}"
        )

    def smooth_pose(self, raw: Pose) -> Pose:
        """
        Stabilize one raw tracking update

        Preconditions (checked by debug asserts only): finite position,
        unit orientation. NaN input propagates rather than raising.

        Args:
            raw: pose reported by the tracker for this frame

        Returns:
            stabilized pose (the raw pose itself on the first call)
        """
        assert np.all(np.isfinite(raw.position)), f"non-finite position: {raw.position}"
        assert abs(raw.orientation.norm - 1.0) < 1e-3, f"non-unit orientation: {raw.orientation}"

        last = self._last_stable_pose
        if last is None:
            self._last_stable_pose = raw
            self._history.append(raw)
            return raw

        movement = self._calculate_movement(raw, last)
        self._movement_velocity = (
            self._movement_velocity * VELOCITY_DECAY +
            movement * (1.0 - VELOCITY_DECAY)
        )

        intentional = self._is_intentional(movement)
        effective = self._effective_smoothing(movement)
        if intentional:
            effective *= INTENTIONAL_REDUCTION

        alpha = 1.0 - effective
        smoothed = Pose(
            position=PoseConverter.lerp(last.position, raw.position, alpha),
            orientation=PoseConverter.slerp(last.orientation, raw.orientation, alpha),
            timestamp=raw.timestamp
        )

        logger.debug(
            f"movement={movement:.4f} velocity={self._movement_velocity:.4f} "
            f"intentional={intentional} effective={effective:.3f}"
        )

        self._last_stable_pose = smoothed
        self._history.append(raw)
        return smoothed

    def _calculate_movement(self, raw: Pose, last: Pose) -> float:
        """Combined position + rotation change in pixel-like units"""
        position_delta = float(np.linalg.norm(raw.position - last.position))
        rotation_delta = abs(1.0 - abs(raw.orientation.dot(last.orientation)))
        return position_delta * POSITION_WEIGHT + rotation_delta * ROTATION_WEIGHT

    def _is_intentional(self, movement: float) -> bool:
        """
        Over the absolute floor and either accelerating relative to the
        recent average or unambiguously large.
        """
        threshold = self._config.jitter_threshold
        exceeds_threshold = movement > threshold
        shows_acceleration = movement > self._movement_velocity * ACCELERATION_RATIO
        return exceeds_threshold and (shows_acceleration or movement > threshold * 2)

    def _effective_smoothing(self, movement: float) -> float:
        factor = self._config.smoothing_factor
        if not self._config.adaptive_smoothing:
            return factor

        span = self._config.jitter_threshold * ADAPTIVE_SPAN
        if span > 0.0:
            ratio = min(movement / span, 1.0)
        else:
            ratio = 1.0 if movement > 0.0 else 0.0
        return factor * (1.0 - ratio * ADAPTIVE_MAX_REDUCTION)

    def detect_jitter(self) -> bool:
        """
        Heuristic jitter pattern check over the newest raw poses

        Continuous, tiny, non-zero steps while the movement average stays
        elevated. Diagnostic only; smoothing does not depend on it.
        """
        if len(self._history) < JITTER_WINDOW:
            return False

        positions = self._history.latest_positions(JITTER_WINDOW)
        steps = np.linalg.norm(np.diff(positions, axis=0), axis=1)

        threshold = self._config.jitter_threshold
        is_small = float(np.mean(steps)) < threshold / 100.0
        is_continuous = bool(np.all(steps > 0.0))

        return is_small and is_continuous and self._movement_velocity > threshold * 0.5

    def reset(self):
        """Drop all rolling state; configuration is kept"""
        self._history.clear()
        self._last_stable_pose = None
        self._movement_velocity = 0.0
        logger.debug("Stabilizer reset")

    def update_config(
        self,
        partial: Optional[Union[PartialConfig, Mapping[str, Any]]] = None,
        **overrides
    ):
        """
        Merge configuration changes

        A stability_mode in the same call re-applies that preset; explicit
        smoothing_factor / jitter_threshold in the same call still win.

        Args:
            partial: PartialConfig or mapping of fields
            **overrides: field=value shortcuts merged over partial
        """
        update = _as_partial(partial)
        if overrides:
            update = PartialConfig(**{**update.provided(), **PartialConfig.from_dict(overrides).provided()})

        self._config = resolve_config(self._config, update)
        logger.info(f"Stabilizer config updated: {self._config.to_dict()}")

    def get_metrics(self) -> StabilityMetrics:
        return StabilityMetrics(
            movement_velocity=self._movement_velocity,
            history_length=len(self._history),
            is_jittering=self.detect_jitter(),
            smoothing_factor=self._config.smoothing_factor,
            stability_mode=self._config.stability_mode.value
        )

    @property
    def config(self) -> StabilizerConfig:
        return self._config

    @property
    def last_stable_pose(self) -> Optional[Pose]:
        return self._last_stable_pose

    @property
    def movement_velocity(self) -> float:
        return self._movement_velocity

    @property
    def history(self) -> Tuple[Pose, ...]:
        """Raw poses held for diagnosis, oldest first"""
        return tuple(self._history.poses())

    @property
    def is_initialized(self) -> bool:
        return self._last_stable_pose is not None


def _as_partial(
    config: Optional[Union[PartialConfig, Mapping[str, Any]]]
) -> PartialConfig:
    if config is None:
        return PartialConfig()
    if isinstance(config, PartialConfig):
        return config
    return PartialConfig.from_dict(config)
