"""
arbrochure - AR brochure viewer tracking core

Key features:
- Adaptive pose stabilization for image-target anchors
- Noise vs. intentional motion classification
- Runtime stability presets (responsive / stable / ultra-stable)
- Offline replay of recorded or synthetic tracker output

Version: 1.0
Author: AR Brochure Team
"""

__version__ = "1.0.0"
__author__ = "AR Brochure Team"

from .tracking.pose import (
    Quaternion,
    Pose,
    PoseConverter
)

from .tracking.pose_stabilizer import (
    PoseStabilizer,
    StabilizerConfig,
    PartialConfig,
    StabilityMode,
    StabilityMetrics
)

from .main import (
    ARTrackingSystem,
    TrackingState,
    TrackingEvent,
    FrameResult
)

__all__ = [
    # Pose types
    'Quaternion',
    'Pose',
    'PoseConverter',
    # Stabilizer
    'PoseStabilizer',
    'StabilizerConfig',
    'PartialConfig',
    'StabilityMode',
    'StabilityMetrics',
    # System
    'ARTrackingSystem',
    'TrackingState',
    'TrackingEvent',
    'FrameResult',
]
