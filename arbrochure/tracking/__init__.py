"""
tracking module - pose stabilization for image-target tracking

Takes the raw anchor transform reported per video frame and produces a
stabilized pose for rendering.

Main features:
- Pose / Quaternion value types, 4x4 matrix <-> Pose conversion
- Fixed-capacity raw pose history (ring buffer)
- Adaptive smoothing with noise vs. intentional motion classification
- Runtime-switchable stability presets and diagnostic metrics
"""

from .pose import (
    Quaternion,
    Pose,
    PoseConverter
)

from .pose_history import PoseHistory

from .pose_stabilizer import (
    PoseStabilizer,
    StabilizerConfig,
    PartialConfig,
    StabilityMode,
    StabilityMetrics,
    STABILITY_PRESETS,
    resolve_config
)

__all__ = [
    'Quaternion',
    'Pose',
    'PoseConverter',
    'PoseHistory',
    'PoseStabilizer',
    'StabilizerConfig',
    'PartialConfig',
    'StabilityMode',
    'StabilityMetrics',
    'STABILITY_PRESETS',
    'resolve_config',
]
